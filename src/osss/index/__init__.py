from osss.index.builder import IndexBuilder, build_index
from osss.index.types import IndexedAssignment, IndexIssue, ScheduleIndex

__all__ = ["IndexBuilder", "IndexIssue", "IndexedAssignment", "ScheduleIndex", "build_index"]
