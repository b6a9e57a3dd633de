"""Table metadata, index matching and table comparison.

Usage:
    from db_snapshot.schema import TableDescription, RegexIndexMatcher
    from db_snapshot.schema.comparator import compare_tables
"""

from db_snapshot.schema.matchers import (
    IndexMatcher,
    LiteralIndexMatcher,
    RegexIndexMatcher,
    select_index_matcher,
)
from db_snapshot.schema.models import (
    TableDescription,
    describe_index,
    format_row,
    parse_description,
    parse_row,
)

__all__ = [
    "TableDescription",
    "IndexMatcher",
    "LiteralIndexMatcher",
    "RegexIndexMatcher",
    "select_index_matcher",
    "describe_index",
    "parse_description",
    "format_row",
    "parse_row",
]
