"""
Exceptions raised by SQL Server Data Dumper.
"""

from typing import Optional

from .models import TableIdentity


class DumpError(Exception):
    """Base class for dump failures."""


class MetadataUnavailableError(DumpError):
    """Table or column listing failed; the whole dump is aborted."""

    def __init__(self, message: str, table: Optional[TableIdentity] = None):
        super().__init__(message)
        self.table = table


class RowReadError(DumpError):
    """Reading rows of a table failed part way through.

    Statements already written for the table may be left unterminated.
    """

    def __init__(self, table: TableIdentity, rows_read: int, message: str):
        super().__init__(f"Failed reading {table.full_name} after {rows_read} rows: {message}")
        self.table = table
        self.rows_read = rows_read
