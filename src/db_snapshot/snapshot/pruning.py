"""Apply skip rules to freshly loaded table metadata.

Pruning never removes entries while iterating; every function builds new
collections and assigns them back.
"""

import logging
from collections.abc import Iterable, Mapping

from db_snapshot.schema.models import TableDescription
from db_snapshot.snapshot.rules import SkipIndex, SkipIndexAttributes

logger = logging.getLogger(__name__)


def remove_skipped_tables(
    tables: Iterable[TableDescription], skipped_tables: set[str]
) -> list[TableDescription]:
    """Drop tables whose lower-cased name is in *skipped_tables*."""
    return [t for t in tables if t.name.lower() not in skipped_tables]


def matches_property_set(
    table: str,
    index_name: str,
    properties: Mapping[str, str],
    property_set: Mapping[str, str],
) -> bool:
    """Return True if every key/value pair of *property_set* equals *properties*.

    A key the index does not have is reported and makes the set non-matching.
    """
    for key, value in property_set.items():
        if key not in properties:
            logger.warning(
                "Unknown index property '%s' in skip rule for index %s of table %s",
                key,
                index_name,
                table,
            )
            return False
        if properties[key] != value:
            return False
    return bool(property_set)


def strip_attributes(description: str, attributes: Iterable[str]) -> str:
    """Remove ``key=value`` tokens whose key is in *attributes*.

    Example:
        >>> strip_attributes("COLUMN_NAME=id, NON_UNIQUE=false, TYPE=3", ["type"])
        'COLUMN_NAME=id, NON_UNIQUE=false'
    """
    removed = {a.lower() for a in attributes}
    kept = []
    for token in description.split(","):
        token = token.strip()
        if not token:
            continue
        key = token.split("=", 1)[0].strip().lower()
        if key not in removed:
            kept.append(token)
    return ", ".join(kept)


def prune_indexes(
    table: TableDescription,
    skip_index: SkipIndex | None,
    skip_attributes: SkipIndexAttributes | None,
) -> None:
    """Drop skipped indexes and strip skipped attributes from the rest."""
    if skip_index is None and skip_attributes is None:
        return

    indexes: dict[str, str] = {}
    properties: dict[str, dict[str, str]] = {}
    for name, description in table.indexes.items():
        index_props = table.index_properties.get(name, {})
        if skip_index is not None and any(
            matches_property_set(table.name, name, index_props, s)
            for s in skip_index.property_sets
        ):
            logger.debug("Skip index %s of table %s", name, table.name)
            continue
        if skip_attributes is not None:
            stripped = skip_attributes.attributes_for(name)
            if stripped:
                description = strip_attributes(description, stripped)
        indexes[name] = description
        if name in table.index_properties:
            properties[name] = index_props

    table.indexes = indexes
    table.index_properties = properties
