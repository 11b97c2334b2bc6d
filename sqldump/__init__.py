"""
SQL Server Data Dumper
======================
Dumps the data of SQL Server databases as T-SQL INSERT scripts with:
- Deterministic table and row order
- Exact literals for dates, decimals, binary and Unicode text
- Configurable statement and transaction batching
- Identity insert and constraint toggling for replay
"""

from .config import ConfigLoader
from .connection import DatabaseConnection
from .database_dumper import DatabaseDumper
from .dumper import Dumper, sort_tables
from .exceptions import DumpError, MetadataUnavailableError, RowReadError
from .formatters import format_value, get_formatter
from .main import main
from .models import (
    BatchState,
    ColumnInfo,
    DatabaseStats,
    DumpOptions,
    DumpStats,
    FormatterBinding,
    PreciseTime,
    ProgressData,
    TableDescriptor,
    TableIdentity,
    TableStats,
)
from .table_dumper import TableDumper, build_table_descriptor
from .utils import format_options_display, print_dry_run_info, setup_logging

__version__ = "1.0.0"

__all__ = [
    # Main entry point
    "main",
    # Core classes
    "ConfigLoader",
    "DatabaseConnection",
    "DatabaseDumper",
    "Dumper",
    "TableDumper",
    # Core functions
    "build_table_descriptor",
    "format_value",
    "get_formatter",
    "sort_tables",
    # Errors
    "DumpError",
    "MetadataUnavailableError",
    "RowReadError",
    # Models
    "BatchState",
    "ColumnInfo",
    "DatabaseStats",
    "DumpOptions",
    "DumpStats",
    "FormatterBinding",
    "PreciseTime",
    "ProgressData",
    "TableDescriptor",
    "TableIdentity",
    "TableStats",
    # Utilities
    "format_options_display",
    "print_dry_run_info",
    "setup_logging",
]
