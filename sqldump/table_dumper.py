"""
Table dumping functionality for SQL Server Data Dumper.
"""

import logging
from typing import Any, Iterator, Optional, TextIO

import pyodbc

from .exceptions import RowReadError
from .formatters import get_formatter, is_ignored_type, is_special_type
from .models import (
    BatchState,
    ColumnInfo,
    DumpOptions,
    FormatterBinding,
    ProgressData,
    TableDescriptor,
    TableIdentity,
    quote_name,
)


def build_table_descriptor(table: TableIdentity, columns: list[ColumnInfo]) -> TableDescriptor:
    """
    Work out which columns to read for a table and in what order.

    Spatial and hierarchy columns are read through ``ToString()`` and aliased
    back to their own name. Rows are ordered by the primary key columns; a
    table without one is read in whatever order the server returns.
    """
    descriptor = TableDescriptor(table=table, full_name=table.full_name)

    for column in columns:
        descriptor.column_names.append(column.name)
        descriptor.column_types.append(column.type)

        expression = quote_name(column.name)
        if is_special_type(column.type):
            expression = f"{expression}.ToString() AS {expression}"
        descriptor.select_columns.append((expression, column.name))

    key_columns = sorted(
        (column for column in columns if column.key_ordinal is not None),
        key=lambda column: (column.key_ordinal, column.name)
    )
    descriptor.sort_columns = [column.name for column in key_columns]

    return descriptor


def build_select_query(descriptor: TableDescriptor) -> str:
    """Build SELECT query reading a table in key order."""
    select_list = ', '.join(expression for expression, _ in descriptor.select_columns)
    query = f"SELECT {select_list} FROM {descriptor.full_name}"

    if descriptor.sort_columns:
        query += " ORDER BY " + ', '.join(quote_name(col) for col in descriptor.sort_columns)

    return query


def bind_formatters(
    descriptor: TableDescriptor,
    description: Optional[list[tuple[Any, ...]]] = None
) -> list[FormatterBinding]:
    """Resolve a formatter per selected column, dropping ignored columns."""
    bindings = []
    for ordinal, (name, type_name) in enumerate(zip(descriptor.column_names, descriptor.column_types)):
        value_type = description[ordinal][1] if description else None
        formatter = get_formatter(type_name, value_type)
        if formatter is None:
            logging.debug(f"Skipping column '{name}' of type '{type_name}' in {descriptor.full_name}")
            continue
        bindings.append(FormatterBinding(output_name=name, value_fn=formatter, ordinal=ordinal))
    return bindings


class TableDumper:
    """Writes INSERT statements for individual tables."""

    def __init__(self, connection, writer: TextIO, options: DumpOptions):
        self.connection = connection
        self.writer = writer
        self.options = options

    def describe_table(self, table: TableIdentity) -> TableDescriptor:
        columns = self.connection.get_table_columns(table)
        return build_table_descriptor(table, columns)

    def dump_table(self, table: TableIdentity) -> Iterator[ProgressData]:
        """
        Dump a table, yielding progress before each row and once when done.

        The table's cursor stays open while the generator is suspended and is
        closed when it finishes or is closed early.

        Raises:
            MetadataUnavailableError: If the table's columns cannot be listed.
            RowReadError: If reading rows fails part way through.
        """
        descriptor = self.describe_table(table)
        state = BatchState(
            rows_in_statement=self.options.rows_in_statement,
            statements_in_transaction=self.options.statements_in_transaction
        )

        self._write_line()
        self._write_line(f"-- Table {descriptor.full_name}")

        if any(not is_ignored_type(type_name) for type_name in descriptor.column_types):
            yield from self._dump_rows(descriptor, state)
        else:
            logging.debug(f"Table {descriptor.full_name} has no columns to dump")

        if state.rows_emitted > 0:
            self._finish_table(descriptor)

        yield ProgressData(table.schema, table.name, state.rows_emitted, True)

    def _dump_rows(self, descriptor: TableDescriptor, state: BatchState) -> Iterator[ProgressData]:
        """Stream rows from the server into INSERT statements."""
        table = descriptor.table
        query = build_select_query(descriptor)
        logging.debug(f"Dumping table {descriptor.full_name} with query: {query[:200]}")

        cursor = self.connection.get_cursor()
        try:
            cursor.execute(query)
            bindings = bind_formatters(descriptor, cursor.description)
            column_list = ', '.join(quote_name(binding.output_name) for binding in bindings)

            for row in cursor:
                yield ProgressData(table.schema, table.name, state.rows_emitted, False)
                self._write_row_prefix(descriptor, state, column_list)
                values = ', '.join(binding.value_fn(row[binding.ordinal]) for binding in bindings)
                self.writer.write(f"  ({values})")
                state.rows_emitted += 1
        except pyodbc.Error as e:
            raise RowReadError(table, state.rows_emitted, str(e)) from e
        finally:
            cursor.close()

    def _write_row_prefix(self, descriptor: TableDescriptor, state: BatchState, column_list: str) -> None:
        """Open a new statement, transaction or script segment when a boundary is reached."""
        if not state.starts_batch:
            self._write_line(",")
            return

        if state.rows_emitted == 0:
            self._set_identity_insert(descriptor.full_name, 'ON')
        else:
            self._write_line(";")

        if self.options.statements_in_transaction == 0:
            if state.rows_emitted > 0:
                self._write_go()
        elif state.starts_transaction:
            if state.rows_emitted > 0:
                self._write_line("COMMIT;")
                self._write_go()
                self._write_line()
            self._write_line("BEGIN TRANSACTION;")

        self._write_line(f"INSERT INTO {descriptor.full_name} ({column_list}) VALUES")

    def _finish_table(self, descriptor: TableDescriptor) -> None:
        self._write_line(";")
        if self.options.statements_in_transaction > 0:
            self._write_line("COMMIT;")
        self._set_identity_insert(descriptor.full_name, 'OFF')
        self._write_go()

    def _set_identity_insert(self, full_name: str, value: str) -> None:
        # No-op at replay time on tables without an identity column
        object_name = full_name.replace("'", "''")
        self._write_line(
            f"IF OBJECTPROPERTY(OBJECT_ID('{object_name}'), 'TableHasIdentity') = 1 "
            f"SET IDENTITY_INSERT {full_name} {value};"
        )

    def _write_go(self) -> None:
        if self.options.use_go_statements:
            self._write_line("GO")

    def _write_line(self, text: str = "") -> None:
        self.writer.write(text + "\n")
