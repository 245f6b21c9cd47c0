from osss.selector.ast import Selector, Wildcard, parse_selector, to_nnf
from osss.selector.resolver import Candidate, SelectorContext, matches, scope

__all__ = [
    "Candidate",
    "Selector",
    "SelectorContext",
    "Wildcard",
    "matches",
    "parse_selector",
    "scope",
    "to_nnf",
]
