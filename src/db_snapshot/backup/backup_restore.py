"""Save snapshots to XML backup documents and load them back.

A backup holds the table metadata, the table content loaded with the
snapshot's own skip rules and the skip rules themselves, so a reloaded
snapshot compares with the same exceptions it was saved with.

Usage:
    from db_snapshot.backup.backup_restore import load_from_file, save_to_file

    document = save_to_file(snapshot, "snapshots/before.xml")

    restored = DatabaseSnapshot("placeholder")
    document = load_from_file(restored, "snapshots/before.xml")
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING

from db_snapshot.backup.vocabulary import (
    ATTR_CONTENT_TIME,
    ATTR_INDEX_DESCRIPTION,
    ATTR_INDEX_PATTERN,
    ATTR_INDEX_UID,
    ATTR_METADATA_TIME,
    ATTR_PROPERTY_NAME,
    ATTR_PROPERTY_VALUE,
    ATTR_REMEMBER_NUMBER_OF_ROWS,
    ATTR_SKIP_COLUMN,
    ATTR_SKIP_INDEX,
    ATTR_SKIP_TABLE,
    ATTR_SKIP_VALUE,
    ATTR_SNAPSHOT_NAME,
    ATTR_TABLE_NAME,
    ATTR_TABLE_NUMBER_OF_ROWS,
    ATTR_TABLE_PRIMARY_KEY,
    ATTR_TABLE_SCHEMA,
    NODE_COLUMN_DESCRIPTION,
    NODE_COLUMN_DESCRIPTIONS,
    NODE_DB_SNAPSHOT,
    NODE_INDEX,
    NODE_INDEX_MATCHER,
    NODE_INDEX_PROPERTY,
    NODE_INDEXES,
    NODE_ROW,
    NODE_SKIP_ATTRIBUTE,
    NODE_SKIP_COLUMN,
    NODE_SKIP_COLUMNS,
    NODE_SKIP_CONTENT,
    NODE_SKIP_INDEX_ATTRIBUTES,
    NODE_SKIP_ROWS,
    NODE_TABLE,
)
from db_snapshot.schema.matchers import LiteralIndexMatcher, RegexIndexMatcher
from db_snapshot.schema.models import TableDescription
from db_snapshot.snapshot.errors import DatabaseSnapshotError
from db_snapshot.utils import (
    NOT_TAKEN,
    current_millis,
    escape_text,
    string_to_timestamp,
    timestamp_to_string,
    unescape_text,
)

if TYPE_CHECKING:
    from db_snapshot.snapshot.snapshot import DatabaseSnapshot

logger = logging.getLogger(__name__)


# ============================================================================
# Save
# ============================================================================


def _table_to_node(parent: ET.Element, table: TableDescription) -> ET.Element:
    node = ET.SubElement(parent, NODE_TABLE)
    node.set(ATTR_TABLE_NAME, table.name)
    if table.schema_name:
        node.set(ATTR_TABLE_SCHEMA, table.schema_name)
    node.set(ATTR_TABLE_PRIMARY_KEY, table.primary_key_column)

    columns_node = ET.SubElement(node, NODE_COLUMN_DESCRIPTIONS)
    for description in table.column_descriptions:
        ET.SubElement(columns_node, NODE_COLUMN_DESCRIPTION).text = escape_text(description)

    if table.indexes:
        indexes_node = ET.SubElement(node, NODE_INDEXES)
        for name, description in table.indexes.items():
            index_node = ET.SubElement(indexes_node, NODE_INDEX)
            index_node.set(ATTR_INDEX_UID, name)
            index_node.set(ATTR_INDEX_DESCRIPTION, escape_text(description))
            for key, value in table.index_properties.get(name, {}).items():
                ET.SubElement(
                    index_node,
                    NODE_INDEX_PROPERTY,
                    {ATTR_PROPERTY_NAME: key, ATTR_PROPERTY_VALUE: escape_text(value)},
                )
    return node


def _append_skip_rules(root: ET.Element, snapshot: "DatabaseSnapshot") -> None:
    for rule in snapshot.skip_content.values():
        ET.SubElement(
            root,
            NODE_SKIP_CONTENT,
            {
                ATTR_SKIP_TABLE: rule.table,
                ATTR_REMEMBER_NUMBER_OF_ROWS: str(rule.remember_number_of_rows).lower(),
            },
        )

    for rule in snapshot.skip_columns.values():
        node = ET.SubElement(root, NODE_SKIP_COLUMNS, {ATTR_SKIP_TABLE: rule.table})
        for column in rule.columns:
            ET.SubElement(node, NODE_SKIP_COLUMN).text = column

    for rule in snapshot.skip_attributes.values():
        for index, attributes in rule.attributes.items():
            node = ET.SubElement(
                root,
                NODE_SKIP_INDEX_ATTRIBUTES,
                {ATTR_SKIP_TABLE: rule.table, ATTR_SKIP_INDEX: index},
            )
            for attribute in attributes:
                ET.SubElement(node, NODE_SKIP_ATTRIBUTE).text = attribute

    for rule in snapshot.skip_rows.values():
        for predicate in rule.predicates:
            ET.SubElement(
                root,
                NODE_SKIP_ROWS,
                {
                    ATTR_SKIP_TABLE: rule.table,
                    ATTR_SKIP_COLUMN: predicate.column,
                    ATTR_SKIP_VALUE: escape_text(predicate.value),
                },
            )

    if isinstance(snapshot.index_matcher, RegexIndexMatcher):
        ET.SubElement(
            root,
            NODE_INDEX_MATCHER,
            {ATTR_INDEX_PATTERN: escape_text(snapshot.index_matcher.pattern)},
        )
    elif snapshot.index_matcher is not None and not isinstance(
        snapshot.index_matcher, LiteralIndexMatcher
    ):
        logger.warning(
            "Index matcher %s of snapshot [%s] is not saved, only name patterns are",
            type(snapshot.index_matcher).__name__,
            snapshot.name,
        )


def save_to_file(snapshot: "DatabaseSnapshot", backup_file: str | Path) -> ET.Element:
    """Write *snapshot* with its content and skip rules to *backup_file*.

    Content is loaded with the snapshot's own column and row rules.  Tables
    with a content rule get no rows, only ``numberOfRows`` when the rule
    remembers the row count.  Parent directories are created as needed.

    Args:
        snapshot: An acquired snapshot.
        backup_file: Destination path.

    Returns:
        Root element of the written document.

    Raises:
        DatabaseSnapshotError: If the snapshot was never taken.
    """
    if snapshot.metadata_timestamp == NOT_TAKEN:
        raise DatabaseSnapshotError(
            f"Snapshot [{snapshot.name}] cannot be saved before it is taken"
        )

    path = Path(backup_file)
    logger.info("Save database snapshot [%s] into file %s - START", snapshot.name, path)
    path.parent.mkdir(parents=True, exist_ok=True)

    snapshot.content_timestamp = current_millis()
    root = ET.Element(
        NODE_DB_SNAPSHOT,
        {
            ATTR_SNAPSHOT_NAME: snapshot.name,
            ATTR_METADATA_TIME: timestamp_to_string(snapshot.metadata_timestamp),
            ATTR_CONTENT_TIME: timestamp_to_string(snapshot.content_timestamp),
        },
    )

    for table in snapshot.tables:
        node = _table_to_node(root, table)
        key = table.name.lower()

        content_rule = snapshot.skip_content.get(key)
        if content_rule is not None:
            if content_rule.remember_number_of_rows:
                count = snapshot.load_table_row_count(table)
                node.set(ATTR_TABLE_NUMBER_OF_ROWS, str(count))
            continue

        rows = snapshot.load_table_rows(
            table, snapshot.skip_columns.get(key), snapshot.skip_rows.get(key)
        )
        for row in rows:
            ET.SubElement(node, NODE_ROW).text = escape_text(row)

    _append_skip_rules(root, snapshot)

    tree = ET.ElementTree(root)
    ET.indent(tree, space="    ")
    tree.write(path, encoding="utf-8", xml_declaration=True)

    logger.info("Save database snapshot [%s] into file %s - END", snapshot.name, path)
    return root


# ============================================================================
# Load
# ============================================================================


def _table_from_node(snapshot_name: str, node: ET.Element) -> TableDescription:
    name = node.get(ATTR_TABLE_NAME)
    if not name:
        raise DatabaseSnapshotError(f"Backup table node without a '{ATTR_TABLE_NAME}' attribute")

    column_nodes = node.findall(NODE_COLUMN_DESCRIPTIONS)
    if len(column_nodes) != 1:
        raise DatabaseSnapshotError(
            f"Table {name} must have exactly one {NODE_COLUMN_DESCRIPTIONS} node, "
            f"found {len(column_nodes)}"
        )

    indexes: dict[str, str] = {}
    index_properties: dict[str, dict[str, str]] = {}
    for index_node in node.iterfind(f"{NODE_INDEXES}/{NODE_INDEX}"):
        uid = index_node.get(ATTR_INDEX_UID, "")
        indexes[uid] = unescape_text(index_node.get(ATTR_INDEX_DESCRIPTION, ""))
        index_properties[uid] = {
            p.get(ATTR_PROPERTY_NAME, ""): unescape_text(p.get(ATTR_PROPERTY_VALUE, ""))
            for p in index_node.findall(NODE_INDEX_PROPERTY)
        }

    return TableDescription(
        name=name,
        schema_name=node.get(ATTR_TABLE_SCHEMA) or None,
        snapshot_name=snapshot_name,
        primary_key_column=node.get(ATTR_TABLE_PRIMARY_KEY, ""),
        column_descriptions=[
            unescape_text(c.text or "")
            for c in column_nodes[0].findall(NODE_COLUMN_DESCRIPTION)
        ],
        indexes=indexes,
        index_properties=index_properties,
    )


def _load_skip_rules(root: ET.Element, snapshot: "DatabaseSnapshot") -> None:
    for node in root.findall(NODE_SKIP_CONTENT):
        snapshot.skip_table_content(
            node.get(ATTR_SKIP_TABLE, ""),
            remember_number_of_rows=node.get(ATTR_REMEMBER_NUMBER_OF_ROWS, "").lower() == "true",
        )

    for node in root.findall(NODE_SKIP_COLUMNS):
        table = node.get(ATTR_SKIP_TABLE, "")
        columns = [c.text for c in node.findall(NODE_SKIP_COLUMN) if c.text]
        if columns:
            snapshot.skip_table_columns(table, *columns)
        else:
            snapshot.skip_tables(table)

    for node in root.findall(NODE_SKIP_INDEX_ATTRIBUTES):
        attributes = [a.text for a in node.findall(NODE_SKIP_ATTRIBUTE) if a.text]
        snapshot.skip_index_attributes(
            node.get(ATTR_SKIP_TABLE, ""), node.get(ATTR_SKIP_INDEX, ""), *attributes
        )

    for node in root.findall(NODE_SKIP_ROWS):
        snapshot.skip_table_rows(
            node.get(ATTR_SKIP_TABLE, ""),
            node.get(ATTR_SKIP_COLUMN, ""),
            unescape_text(node.get(ATTR_SKIP_VALUE, "")),
        )

    matcher_node = root.find(NODE_INDEX_MATCHER)
    pattern = matcher_node.get(ATTR_INDEX_PATTERN) if matcher_node is not None else None
    if pattern:
        try:
            snapshot.set_index_matcher(unescape_text(pattern))
        except ValueError as e:
            raise DatabaseSnapshotError(f"Backup has an invalid index matcher: {e}") from e


def load_from_file(
    snapshot: "DatabaseSnapshot",
    source_file: str | Path,
    new_snapshot_name: str | None = None,
) -> ET.Element:
    """Populate *snapshot* from a backup document.

    Args:
        snapshot: Snapshot receiving name, timestamps, tables and rules.
        source_file: Backup file written by ``save_to_file``.
        new_snapshot_name: Name replacing the one stored in the file.

    Returns:
        Root element of the document, used afterwards to read content.

    Raises:
        DatabaseSnapshotError: If the file cannot be parsed or is not a
            snapshot backup.
    """
    path = Path(source_file)
    logger.info("Load database snapshot from file %s - START", path)

    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        raise DatabaseSnapshotError(f"Cannot read snapshot backup file {path}: {e}") from e

    if root.tag != NODE_DB_SNAPSHOT:
        raise DatabaseSnapshotError(
            f"Backup file {path} has root node '{root.tag}', expected '{NODE_DB_SNAPSHOT}'"
        )

    name = (new_snapshot_name or "").strip() or (root.get(ATTR_SNAPSHOT_NAME) or "").strip()
    if not name:
        raise DatabaseSnapshotError(f"Backup file {path} has no snapshot name")

    try:
        metadata_timestamp = string_to_timestamp(root.get(ATTR_METADATA_TIME, ""))
        content_time = root.get(ATTR_CONTENT_TIME)
        content_timestamp = string_to_timestamp(content_time) if content_time else NOT_TAKEN
    except ValueError as e:
        raise DatabaseSnapshotError(f"Backup file {path} has an invalid timestamp: {e}") from e

    snapshot.name = name
    snapshot.metadata_timestamp = metadata_timestamp
    snapshot.content_timestamp = content_timestamp
    snapshot.tables = [_table_from_node(name, node) for node in root.findall(NODE_TABLE)]
    _load_skip_rules(root, snapshot)

    logger.info(
        "Load database snapshot [%s] from file %s - END (%d tables)",
        name,
        path,
        len(snapshot.tables),
    )
    return root


# ============================================================================
# Content access
# ============================================================================


def find_table_node(document: ET.Element, table_name: str) -> ET.Element | None:
    """Find the ``TABLE`` node of *table_name* (case-insensitive)."""
    wanted = table_name.lower()
    for node in document.findall(NODE_TABLE):
        if (node.get(ATTR_TABLE_NAME) or "").lower() == wanted:
            return node
    return None


def read_table_rows(document: ET.Element, table_name: str) -> list[str]:
    """Row strings stored for *table_name*, unescaped."""
    node = find_table_node(document, table_name)
    if node is None:
        return []
    return [unescape_text(row.text or "") for row in node.findall(NODE_ROW)]


def read_table_row_count(document: ET.Element, table_name: str) -> int:
    """Stored ``numberOfRows``, or the number of ``row`` nodes when absent."""
    node = find_table_node(document, table_name)
    if node is None:
        return 0
    count = node.get(ATTR_TABLE_NUMBER_OF_ROWS)
    if count is not None:
        return int(count)
    return len(node.findall(NODE_ROW))
