from osss.normalize.result import NormalizedResult, normalize_result

__all__ = ["NormalizedResult", "normalize_result"]
