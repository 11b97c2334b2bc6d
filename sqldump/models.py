"""
Data models for SQL Server Data Dumper.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


def quote_name(name: str) -> str:
    """Quote an identifier with brackets, doubling any closing bracket."""
    return f"[{name.replace(']', ']]')}]"


@dataclass(frozen=True)
class TableIdentity:
    """Schema-qualified base table name."""
    schema: str
    name: str

    @property
    def sort_key(self) -> tuple[str, str]:
        return self.schema.casefold(), self.name.casefold()

    @property
    def full_name(self) -> str:
        return f"{quote_name(self.schema)}.{quote_name(self.name)}"


@dataclass
class ColumnInfo:
    """Database column metadata."""
    name: str
    type: str
    key_ordinal: Optional[int] = None


@dataclass(frozen=True)
class PreciseTime:
    """Date-time or time of day with its fraction kept in 100-nanosecond ticks."""
    value: datetime.datetime | datetime.time
    ticks: int = 0


@dataclass
class TableDescriptor:
    """Columns to read for a table and the order to read its rows in."""
    table: TableIdentity
    full_name: str
    select_columns: list[tuple[str, str]] = field(default_factory=list)
    sort_columns: list[str] = field(default_factory=list)
    column_names: list[str] = field(default_factory=list)
    column_types: list[str] = field(default_factory=list)


@dataclass
class FormatterBinding:
    """Output column bound to the function rendering its cells."""
    output_name: str
    value_fn: Callable[[Any], str]
    ordinal: int = 0


@dataclass
class BatchState:
    """Row counter deciding statement and transaction boundaries for one table."""
    rows_in_statement: int
    statements_in_transaction: int
    rows_emitted: int = 0

    @property
    def row_in_batch(self) -> int:
        return self.rows_emitted % self.rows_in_statement

    @property
    def batch_in_transaction(self) -> int:
        if self.statements_in_transaction == 0:
            return 0
        return self.rows_emitted // self.rows_in_statement % self.statements_in_transaction

    @property
    def starts_batch(self) -> bool:
        return self.row_in_batch == 0

    @property
    def starts_transaction(self) -> bool:
        return (
            self.statements_in_transaction > 0
            and self.starts_batch
            and self.batch_in_transaction == 0
        )


@dataclass(frozen=True)
class ProgressData:
    """Progress notification for one table."""
    schema: str
    table: str
    rows_dumped: int
    is_completed: bool


@dataclass
class DumpOptions:
    """Script layout options for a dump run."""
    use_go_statements: bool = True
    statements_in_transaction: int = 1000
    rows_in_statement: int = 100
    ignored_table_names: frozenset[str] = frozenset()

    KEYS = ('use_go_statements', 'statements_in_transaction', 'rows_in_statement')

    def validate(self) -> None:
        if self.rows_in_statement < 1:
            raise ValueError(f"rows_in_statement must be at least 1, got {self.rows_in_statement}")
        if self.statements_in_transaction < 0:
            raise ValueError(
                f"statements_in_transaction must not be negative, got {self.statements_in_transaction}"
            )

    @classmethod
    def from_configs(
        cls,
        defaults: dict[str, Any],
        db_config: dict[str, Any]
    ) -> "DumpOptions":
        """
        Create DumpOptions by merging configs with priority: database > defaults.
        """
        settings: dict[str, Any] = {}
        for key in cls.KEYS:
            if key in defaults:
                settings[key] = defaults[key]
            if key in db_config:
                settings[key] = db_config[key]

        ignored = list(defaults.get('ignored_tables', [])) + list(db_config.get('ignored_tables', []))
        options = cls(ignored_table_names=frozenset(ignored), **settings)
        options.validate()
        return options


@dataclass
class TableStats:
    """Statistics for a single table dump."""
    schema: str
    table: str
    rows_dumped: int = 0


@dataclass
class DatabaseStats:
    """Statistics for a single database dump."""
    name: str
    instance: str
    file_path: str = ""
    tables: list[TableStats] = field(default_factory=list)
    total_rows: int = 0
    success: bool = False


@dataclass
class DumpStats:
    """Overall dump statistics."""
    databases: list[DatabaseStats] = field(default_factory=list)
    total_tables: int = 0
    total_rows: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
