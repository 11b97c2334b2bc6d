"""
Utility functions for SQL Server Data Dumper.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from .config import DEFAULT_INSTANCE
from .models import DumpOptions


def setup_logging(log_settings: dict[str, Any]) -> None:
    """Setup logging configuration."""
    log_level = getattr(logging, log_settings.get('level', 'INFO').upper())
    log_file = log_settings.get('file')

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def format_options_display(options: DumpOptions) -> list[str]:
    """Format dump options for display in dry-run mode."""
    parts = [
        f"rows_in_statement={options.rows_in_statement}",
        f"statements_in_transaction={options.statements_in_transaction}",
    ]
    if not options.use_go_statements:
        parts.append("no GO")
    if options.ignored_table_names:
        parts.append(f"ignored={','.join(sorted(options.ignored_table_names))}")
    return parts


def print_dry_run_info(databases: list[dict[str, Any]], defaults: dict[str, Any]) -> None:
    """Log what would be dumped in dry-run mode."""
    for db in databases:
        options = DumpOptions.from_configs(defaults, db)
        logging.info(
            f"Would dump database: {db['name']} from instance: {db.get('instance', DEFAULT_INSTANCE)} "
            f"({', '.join(format_options_display(options))})"
        )
