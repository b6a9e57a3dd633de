"""Pydantic models for database profiles and skip-rule configuration."""

from typing import TYPE_CHECKING

from pydantic import AliasChoices, BaseModel, Field

if TYPE_CHECKING:
    from db_snapshot.snapshot.snapshot import DatabaseSnapshot


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"  # Informational, the URL scheme selects the driver
    schema_name: str | None = Field(
        default=None, validation_alias=AliasChoices("schema", "schema_name")
    )
    sorted_columns: bool = False  # List columns sorted in row queries


class SkipRulesConfig(BaseModel):
    """Skip rules declared in the ``[skip]`` table of db.toml.

    Example:
        >>> rules = SkipRulesConfig(tables=["audit_log"], columns={"orders": ["updated_at"]})
        >>> rules.is_empty
        False
    """

    tables: list[str] = Field(default_factory=list)
    columns: dict[str, list[str]] = Field(default_factory=dict)
    content: dict[str, bool] = Field(default_factory=dict)  # table -> remember number of rows
    rows: dict[str, dict[str, str]] = Field(default_factory=dict)  # table -> {column: pattern}
    index_pattern: str | None = None  # Regex pairing generated index names

    @property
    def is_empty(self) -> bool:
        return not (
            self.tables or self.columns or self.content or self.rows or self.index_pattern
        )

    def apply_to(self, snapshot: "DatabaseSnapshot") -> None:
        """Declare the configured rules on *snapshot*."""
        if self.tables:
            snapshot.skip_tables(*self.tables)
        for table, columns in self.columns.items():
            if columns:
                snapshot.skip_table_columns(table, *columns)
            else:
                snapshot.skip_tables(table)
        for table, remember_number_of_rows in self.content.items():
            snapshot.skip_table_content(table, remember_number_of_rows=remember_number_of_rows)
        for table, predicates in self.rows.items():
            for column, value in predicates.items():
                snapshot.skip_table_rows(table, column, value)
        if self.index_pattern:
            snapshot.set_index_matcher(self.index_pattern)


class DatabaseConfig(BaseModel):
    """Complete database configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    skip: SkipRulesConfig = Field(default_factory=SkipRulesConfig)
