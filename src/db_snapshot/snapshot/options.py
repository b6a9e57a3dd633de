"""Options tuning a snapshot comparison."""

from pydantic import BaseModel, Field, model_validator


class ExpectedRowsRange(BaseModel):
    """Tolerated number of rows present in one snapshot only, both sides summed."""

    min_rows: int = Field(ge=0)
    max_rows: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ExpectedRowsRange":
        if self.min_rows > self.max_rows:
            raise ValueError(
                f"min_rows ({self.min_rows}) must not be greater than max_rows ({self.max_rows})"
            )
        return self

    def contains(self, count: int) -> bool:
        return self.min_rows <= count <= self.max_rows


class CompareOptions(BaseModel):
    """Expected differences to reconcile after comparing two snapshots.

    Example:
        >>> options = CompareOptions()
        >>> options.set_expected_table_missing_rows_count("orders", 1, 3)
        >>> options.expected_missing_rows["orders"].max_rows
        3
    """

    expected_missing_rows: dict[str, ExpectedRowsRange] = Field(default_factory=dict)
    # Stored for callers that inspect it; comparison does not read it
    fail_on_missing_expected_error: bool = False

    def set_expected_table_missing_rows_count(
        self, table: str, min_rows: int, max_rows: int
    ) -> None:
        """Tolerate between *min_rows* and *max_rows* differing rows in *table*.

        Raises:
            ValueError: If the range is negative or ``min_rows > max_rows``.
        """
        self.expected_missing_rows[table] = ExpectedRowsRange(
            min_rows=min_rows, max_rows=max_rows
        )
