"""Index matchers decide which indexes of two snapshots are the same index.

Index names are often generated (``idx_users_email_7f3a``), so comparing
them literally reports spurious differences.  A matcher is passed into the
table comparison and answers two questions: do these names refer to the same
index, and do these property sets describe the same index.

Usage:
    from db_snapshot.schema.matchers import RegexIndexMatcher

    snapshot.set_index_matcher(RegexIndexMatcher(r"idx_[a-z_]+"))
"""

import logging
import re
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class IndexMatcher(Protocol):
    """Protocol for index identity strategies."""

    def is_same(self, table: str, first_name: str, second_name: str) -> bool:
        """Return True if both index names refer to the same index."""
        ...

    def is_same_properties(
        self,
        table: str,
        first_properties: Mapping[str, str],
        second_properties: Mapping[str, str],
    ) -> bool:
        """Return True if both property sets describe the same index."""
        ...


class LiteralIndexMatcher:
    """Default matcher: names must be equal, properties never match."""

    def is_same(self, table: str, first_name: str, second_name: str) -> bool:
        return first_name == second_name

    def is_same_properties(
        self,
        table: str,
        first_properties: Mapping[str, str],
        second_properties: Mapping[str, str],
    ) -> bool:
        return False


class RegexIndexMatcher:
    """Match index names on the first substring matching a pattern.

    Names without a match are compared literally.

    Example:
        >>> matcher = RegexIndexMatcher(r"idx_[a-z]+")
        >>> matcher.is_same("users", "idx_email_01", "idx_email_02")
        True
    """

    def __init__(self, pattern: str) -> None:
        try:
            self._pattern = re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid index name pattern '{pattern}': {e}") from e

    @property
    def pattern(self) -> str:
        return self._pattern.pattern

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegexIndexMatcher):
            return NotImplemented
        return self.pattern == other.pattern

    def __hash__(self) -> int:
        return hash(self.pattern)

    def __repr__(self) -> str:
        return f"RegexIndexMatcher({self.pattern!r})"

    def _key(self, name: str) -> str:
        match = self._pattern.search(name)
        return match.group(0) if match else name

    def is_same(self, table: str, first_name: str, second_name: str) -> bool:
        return self._key(first_name) == self._key(second_name)

    def is_same_properties(
        self,
        table: str,
        first_properties: Mapping[str, str],
        second_properties: Mapping[str, str],
    ) -> bool:
        return False


def select_index_matcher(
    first: IndexMatcher | None,
    second: IndexMatcher | None,
    first_snapshot_name: str = "",
) -> IndexMatcher:
    """Pick the matcher used for a comparison.

    The first snapshot's matcher wins; the second one is used only when the
    first has none.  Without either the literal default is returned.  A
    differing second matcher is reported and ignored.
    """
    if first is not None:
        if second is not None and second != first:
            logger.warning(
                "Both snapshots define an index matcher, using the one from snapshot [%s]",
                first_snapshot_name,
            )
        return first
    if second is not None:
        return second
    return LiteralIndexMatcher()
