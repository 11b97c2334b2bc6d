"""
Runs configured database dumps and writes one script file per database.
"""

import gzip
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import DEFAULT_INSTANCE, ConfigLoader
from .dumper import Dumper
from .models import DatabaseStats, DumpStats, ProgressData, TableStats

SCRIPT_EXTENSION = 'sql'


class DatabaseDumper:
    """Main class for database dumping operations."""

    def __init__(self, config: ConfigLoader):
        self.config = config
        self.output_settings = config.get_output_settings()
        self.stats = DumpStats()

    def run(
        self,
        database_filter: Optional[str] = None,
        instance_filter: Optional[str] = None
    ) -> DumpStats:
        """Run the dump process for all configured databases.

        Args:
            database_filter: If specified, only dump this database name
            instance_filter: If specified, only dump databases from this instance
        """
        output_dir = Path(self.output_settings.get('directory', './dumps'))
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        databases = self.config.select_databases(database_filter, instance_filter)

        logging.info(f"Starting dump of {len(databases)} database(s)")

        for db_config in databases:
            self._dump_database(db_config, output_dir, timestamp)

        return self.stats

    def _output_path(self, output_dir: Path, db_name: str, timestamp: str) -> Path:
        if self.output_settings.get('timestamp_suffix', True):
            return output_dir / f"{db_name}_{timestamp}.{SCRIPT_EXTENSION}"
        return output_dir / f"{db_name}.{SCRIPT_EXTENSION}"

    def _open_output_file(self, output_path: Path) -> tuple[Path, TextIO]:
        """Open output file with optional compression."""
        if self.output_settings.get('compress', False):
            output_path = Path(str(output_path) + '.gz')
            file_handle = gzip.open(output_path, 'wt', encoding='utf-8')
        else:
            file_handle = open(output_path, 'w', encoding='utf-8')

        return output_path, file_handle

    def _dump_database(
        self,
        db_config: dict[str, Any],
        output_dir: Path,
        timestamp: str
    ) -> None:
        """Dump a single database, recording any failure instead of raising."""
        db_name = db_config['name']
        instance_name = db_config.get('instance', DEFAULT_INSTANCE)

        db_stats = DatabaseStats(name=db_name, instance=instance_name)

        try:
            instance_config = self.config.get_instance(instance_name)
            options = self.config.get_dump_options(db_config)

            output_path, file_handle = self._open_output_file(
                self._output_path(output_dir, db_name, timestamp)
            )
            db_stats.file_path = str(output_path)

            with file_handle, Dumper.from_settings(
                instance_config,
                db_name,
                options=options,
                progress=lambda event: self._on_progress(event, db_stats)
            ) as dumper:
                dumper.dump(file_handle)

            db_stats.success = True
            logging.info(f"Database '{db_name}' dumped to {db_stats.file_path}")

        except Exception as e:
            logging.error(f"Error dumping database '{db_name}': {e}")
            self.stats.errors.append({
                'database': db_name,
                'table': getattr(getattr(e, 'table', None), 'full_name', None),
                'error': str(e)
            })

        self.stats.databases.append(db_stats)

    def _on_progress(self, event: ProgressData, db_stats: DatabaseStats) -> None:
        if not event.is_completed:
            return

        table_stats = TableStats(schema=event.schema, table=event.table, rows_dumped=event.rows_dumped)
        db_stats.tables.append(table_stats)
        db_stats.total_rows += table_stats.rows_dumped
        self.stats.total_tables += 1
        self.stats.total_rows += table_stats.rows_dumped

        logging.info(f"  ✓ {table_stats.schema}.{table_stats.table}: {table_stats.rows_dumped} rows")
