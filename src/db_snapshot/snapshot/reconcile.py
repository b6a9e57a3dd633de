"""Remove expected row differences from an equality ledger."""

import logging

from db_snapshot.snapshot.equality import DatabaseEqualityState
from db_snapshot.snapshot.options import CompareOptions, ExpectedRowsRange

logger = logging.getLogger(__name__)


def _reconcile_table(
    equality: DatabaseEqualityState, table: str, expected: ExpectedRowsRange
) -> None:
    first_only = equality.get_rows_present_in_one_snapshot_only(
        equality.first_snapshot_name, table
    )
    second_only = equality.get_rows_present_in_one_snapshot_only(
        equality.second_snapshot_name, table
    )
    total = len(first_only) + len(second_only)

    if not expected.contains(total):
        logger.error(
            "Expected between %d and %d rows present in one snapshot only for table %s, found %d",
            expected.min_rows,
            expected.max_rows,
            table,
            total,
        )
        return

    equality.clear_rows_present_in_one_snapshot_only(table)
    equality.clear_different_number_of_rows(table)
    logger.info(
        "Ignoring %d expected differing rows for table %s (%d in [%s], %d in [%s])",
        total,
        table,
        len(first_only),
        equality.first_snapshot_name,
        len(second_only),
        equality.second_snapshot_name,
    )


def reconcile_expected_differences(
    equality: DatabaseEqualityState, options: CompareOptions
) -> None:
    """Clear tolerated row differences for every table declared in *options*.

    Counts outside the declared range are logged and left in the ledger.
    A failure on one table is logged and does not stop the others.
    """
    for table, expected in options.expected_missing_rows.items():
        try:
            _reconcile_table(equality, table, expected)
        except Exception:
            logger.exception("Failed to reconcile expected differences for table %s", table)
