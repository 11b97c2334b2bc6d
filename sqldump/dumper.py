"""
Dump orchestration: turns a whole SQL Server database into an INSERT script.
"""

import logging
from typing import Any, Callable, Iterator, Optional, TextIO

from .connection import DatabaseConnection
from .models import DumpOptions, ProgressData, TableIdentity
from .table_dumper import TableDumper

DISABLE_CONSTRAINTS = "EXEC sp_MSforeachtable 'ALTER TABLE ? NOCHECK CONSTRAINT ALL'"
ENABLE_CONSTRAINTS = "EXEC sp_MSforeachtable 'ALTER TABLE ? WITH CHECK CHECK CONSTRAINT ALL'"

ProgressCallback = Callable[[ProgressData], None]


def sort_tables(tables: list[TableIdentity]) -> list[TableIdentity]:
    """Order tables by schema then name, ignoring case."""
    return sorted(tables, key=lambda table: table.sort_key)


class Dumper:
    """
    Dumps every base table of a database as INSERT statements.

    Args:
        connection: Connection to read from.
        owns_connection: If True, the dumper connects and disconnects it.
        options: Script layout options; defaults apply when omitted.
        progress: Called with a ProgressData before each row and once per
            completed table.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        owns_connection: bool = False,
        options: Optional[DumpOptions] = None,
        progress: Optional[ProgressCallback] = None
    ):
        self.connection = connection
        self.owns_connection = owns_connection
        self.options = options or DumpOptions()
        self.options.validate()
        self.progress = progress

    @classmethod
    def from_settings(
        cls,
        instance_config: dict[str, Any],
        database: str,
        options: Optional[DumpOptions] = None,
        progress: Optional[ProgressCallback] = None
    ) -> "Dumper":
        """Create a dumper owning a new connection built from instance settings."""
        connection = DatabaseConnection(
            server=instance_config.get('server', 'localhost'),
            port=instance_config.get('port', DatabaseConnection.DEFAULT_PORT),
            user=instance_config.get('user'),
            password=instance_config.get('password'),
            database=database,
            driver=instance_config.get('driver', DatabaseConnection.DEFAULT_DRIVER),
            trust_server_certificate=instance_config.get('trust_server_certificate', False),
            connection_string=instance_config.get('connection_string')
        )
        return cls(connection, owns_connection=True, options=options, progress=progress)

    def __enter__(self) -> "Dumper":
        if self.owns_connection and not self.connection.is_connected:
            self.connection.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection if this dumper owns it."""
        if self.owns_connection:
            self.connection.disconnect()

    def list_tables(self) -> list[TableIdentity]:
        """List tables to dump in a stable order, leaving out ignored names."""
        tables = sort_tables(self.connection.get_tables())
        ignored = self.options.ignored_table_names
        if ignored:
            skipped = [table for table in tables if table.name in ignored]
            for table in skipped:
                logging.debug(f"Table {table.full_name} is ignored")
            tables = [table for table in tables if table.name not in ignored]
        return tables

    def dump(self, writer: TextIO) -> None:
        """Write the script for the whole database to ``writer``."""
        for event in self.iter_dump(writer):
            if self.progress is not None:
                self.progress(event)

    def iter_dump(self, writer: TextIO) -> Iterator[ProgressData]:
        """
        Write the script, yielding progress as it goes.

        Tables are dumped one after another. Stopping iteration early leaves
        the script unfinished but closes the cursor of the current table.
        An owned connection opened here is closed again when iteration ends.
        """
        opened_here = not self.connection.is_connected
        if opened_here:
            self.connection.connect()

        try:
            yield from self._write_script(writer)
        finally:
            if opened_here:
                self.close()

    def _write_script(self, writer: TextIO) -> Iterator[ProgressData]:
        writer.write(DISABLE_CONSTRAINTS + "\n")

        tables = self.list_tables()
        logging.info(f"Dumping {len(tables)} table(s)")

        table_dumper = TableDumper(self.connection, writer, self.options)
        for table in tables:
            yield from table_dumper.dump_table(table)

        writer.write("\n")
        writer.write(ENABLE_CONSTRAINTS + "\n")
        if self.options.use_go_statements:
            writer.write("GO\n")
