"""
Shared fixtures: a list-backed stand-in for the database connection.
"""

from unittest import mock

import pyodbc
import pytest


class FakeCursor:
    """Forward-only cursor over in-memory rows."""

    def __init__(self, rows, description=None, fail_after=None):
        self.rows = rows
        self.description = description
        self.fail_after = fail_after
        self.executed = []
        self.closed = False

    def execute(self, query):
        self.executed.append(query)

    def __iter__(self):
        for i, row in enumerate(self.rows):
            if self.fail_after is not None and i == self.fail_after:
                raise pyodbc.Error('08S01', 'Communication link failure')
            yield row

    def close(self):
        self.closed = True


@pytest.fixture
def make_connection():
    """Build a mock connection from ``{TableIdentity: (columns, rows)}``.

    Cursors handed out are collected on ``connection.cursors``.
    """
    def factory(tables, fail_after=None):
        connection = mock.MagicMock()
        connection.is_connected = True
        connection.get_tables.return_value = list(tables)
        connection.cursors = []
        current = {}

        def get_table_columns(table):
            current['table'] = table
            return tables[table][0]

        def get_cursor():
            cursor = FakeCursor(tables[current['table']][1], fail_after=fail_after)
            connection.cursors.append(cursor)
            return cursor

        connection.get_table_columns.side_effect = get_table_columns
        connection.get_cursor.side_effect = get_cursor
        return connection

    return factory
