"""
Database connection management for SQL Server Data Dumper.
"""

import datetime
import logging
import struct
from typing import Optional

import pyodbc

from .exceptions import MetadataUnavailableError
from .models import ColumnInfo, PreciseTime, TableIdentity

# ODBC type codes of the date-time columns decoded with their full fraction
SQL_TYPE_TIMESTAMP = 93
SQL_SS_TIME2 = -154
SQL_SS_TIMESTAMPOFFSET = -155

NANOSECONDS_PER_TICK = 100

# Primary key ordinal given to columns outside the key, sorts them last
NOT_IN_KEY_ORDINAL = 30000

TABLES_QUERY = """
SELECT TABLE_SCHEMA, TABLE_NAME
FROM INFORMATION_SCHEMA.TABLES
WHERE TABLE_TYPE = 'BASE TABLE'
"""

COLUMNS_QUERY = f"""
SELECT c.COLUMN_NAME, c.DATA_TYPE, k.ORDINAL_POSITION
FROM INFORMATION_SCHEMA.COLUMNS c
LEFT JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE k ON
  c.TABLE_SCHEMA = k.TABLE_SCHEMA AND
  c.TABLE_NAME = k.TABLE_NAME AND
  c.COLUMN_NAME = k.COLUMN_NAME AND
  OBJECTPROPERTY(OBJECT_ID(k.CONSTRAINT_SCHEMA + '.' + QUOTENAME(k.CONSTRAINT_NAME)), 'IsPrimaryKey') = 1
WHERE c.TABLE_SCHEMA = ? AND c.TABLE_NAME = ?
  AND COLUMNPROPERTY(OBJECT_ID(?), c.COLUMN_NAME, 'IsComputed') = 0
ORDER BY ISNULL(k.ORDINAL_POSITION, {NOT_IN_KEY_ORDINAL}), c.COLUMN_NAME
"""


def convert_timestamp(raw: Optional[bytes]) -> Optional[PreciseTime]:
    """Decode the driver's binary datetime2/datetime/smalldatetime value."""
    if raw is None:
        return None
    year, month, day, hour, minute, second, nanoseconds = struct.unpack('<6hI', raw)
    value = datetime.datetime(year, month, day, hour, minute, second)
    return PreciseTime(value, nanoseconds // NANOSECONDS_PER_TICK)


def convert_time(raw: Optional[bytes]) -> Optional[PreciseTime]:
    """Decode the driver's binary time value."""
    if raw is None:
        return None
    hour, minute, second, nanoseconds = struct.unpack('<3H2xI', raw)
    return PreciseTime(datetime.time(hour, minute, second), nanoseconds // NANOSECONDS_PER_TICK)


def convert_datetimeoffset(raw: Optional[bytes]) -> Optional[PreciseTime]:
    """Decode the driver's binary datetimeoffset into an aware date-time."""
    if raw is None:
        return None
    year, month, day, hour, minute, second, nanoseconds, tz_hour, tz_minute = struct.unpack('<6hI2h', raw)
    offset = datetime.timezone(datetime.timedelta(hours=tz_hour, minutes=tz_minute))
    value = datetime.datetime(year, month, day, hour, minute, second, tzinfo=offset)
    return PreciseTime(value, nanoseconds // NANOSECONDS_PER_TICK)


OUTPUT_CONVERTERS = {
    SQL_TYPE_TIMESTAMP: convert_timestamp,
    SQL_SS_TIME2: convert_time,
    SQL_SS_TIMESTAMPOFFSET: convert_datetimeoffset,
}


class DatabaseConnection:
    """Manages SQL Server connections with context manager support."""

    DEFAULT_PORT = 1433
    DEFAULT_DRIVER = 'ODBC Driver 18 for SQL Server'

    def __init__(
        self,
        server: str = 'localhost',
        port: int = DEFAULT_PORT,
        user: Optional[str] = None,
        password: Optional[str] = None,
        database: Optional[str] = None,
        driver: str = DEFAULT_DRIVER,
        trust_server_certificate: bool = False,
        connection_string: Optional[str] = None
    ):
        self.server = server
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.driver = driver
        self.trust_server_certificate = trust_server_certificate
        self.connection_string = connection_string
        self.connection = None

    def __enter__(self) -> "DatabaseConnection":
        """Context manager entry - establish connection."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close connection."""
        self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    def build_connection_string(self) -> str:
        """Build the ODBC connection string unless one was given."""
        if self.connection_string:
            return self.connection_string

        parts = [
            f"DRIVER={{{self.driver}}}",
            f"SERVER={self.server},{self.port}",
        ]
        if self.database:
            parts.append(f"DATABASE={self.database}")
        if self.user:
            parts.append(f"UID={self.user}")
            parts.append(f"PWD={self.password or ''}")
        else:
            parts.append("Trusted_Connection=yes")
        if self.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")
        return ';'.join(parts) + ';'

    def connect(self) -> None:
        """Establish database connection."""
        try:
            pyodbc.native_uuid = True
            self.connection = pyodbc.connect(self.build_connection_string(), autocommit=True)
            for sql_type, converter in OUTPUT_CONVERTERS.items():
                self.connection.add_output_converter(sql_type, converter)
            logging.info(f"Connected to {self.server}:{self.port}/{self.database or 'N/A'}")
        except pyodbc.Error as e:
            logging.error(f"Failed to connect to database: {e}")
            raise

    def disconnect(self) -> None:
        """Close database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None
            logging.debug("Database connection closed")

    def execute_query(self, query: str, params: Optional[tuple] = None) -> list[tuple]:
        """Execute a query and return results."""
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)
            return cursor.fetchall()
        finally:
            cursor.close()

    def get_cursor(self):
        """Get a forward-only cursor for streaming a result set row by row."""
        return self.connection.cursor()

    def get_tables(self) -> list[TableIdentity]:
        """Get all base tables of the current database, in catalog order."""
        try:
            results = self.execute_query(TABLES_QUERY)
        except pyodbc.Error as e:
            raise MetadataUnavailableError(f"Failed to list tables: {e}") from e
        return [TableIdentity(schema=row[0], name=row[1]) for row in results]

    def get_table_columns(self, table: TableIdentity) -> list[ColumnInfo]:
        """Get non-computed columns of a table, primary key columns first."""
        try:
            results = self.execute_query(
                COLUMNS_QUERY,
                (table.schema, table.name, table.full_name)
            )
        except pyodbc.Error as e:
            raise MetadataUnavailableError(
                f"Failed to list columns of {table.full_name}: {e}", table=table
            ) from e
        return [
            ColumnInfo(name=row[0], type=row[1], key_ordinal=row[2])
            for row in results
        ]
