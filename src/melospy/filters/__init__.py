"""Package filtering."""

from melospy.filters.chain import apply_filters, select_packages
from melospy.filters.ignore import filter_by_ignore, should_ignore
from melospy.filters.scope import filter_by_scope, match_name, match_scope, parse_scope

__all__ = [
    "apply_filters",
    "filter_by_ignore",
    "filter_by_scope",
    "match_name",
    "match_scope",
    "parse_scope",
    "select_packages",
    "should_ignore",
]
