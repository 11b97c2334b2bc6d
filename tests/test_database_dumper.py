"""
Unit tests for database_dumper.py
"""

import gzip
import tempfile
from pathlib import Path
from unittest import mock

import pytest

from sqldump.database_dumper import DatabaseDumper
from sqldump.dumper import DISABLE_CONSTRAINTS, Dumper
from sqldump.exceptions import RowReadError
from sqldump.models import ColumnInfo, DatabaseStats, DumpOptions, DumpStats, ProgressData, TableIdentity


def dumpers_for(*connections):
    """Stand-in for Dumper.from_settings handing out the given connections in turn."""
    pending = list(connections)

    def from_settings(instance_config, database, options=None, progress=None):
        return Dumper(pending.pop(0), options=options, progress=progress)

    return from_settings


class TestOutputFiles:
    """Tests for output file naming and compression."""

    def test_timestamped_name(self):
        config = mock.MagicMock()
        config.get_output_settings.return_value = {}
        dumper = DatabaseDumper(config)

        path = dumper._output_path(Path("/dumps"), "Sales", "20240115_103045")

        assert path == Path("/dumps/Sales_20240115_103045.sql")

    def test_plain_name(self):
        config = mock.MagicMock()
        config.get_output_settings.return_value = {"timestamp_suffix": False}
        dumper = DatabaseDumper(config)

        assert dumper._output_path(Path("/dumps"), "Sales", "x") == Path("/dumps/Sales.sql")

    def test_open_with_compression(self):
        config = mock.MagicMock()
        config.get_output_settings.return_value = {"compress": True}
        dumper = DatabaseDumper(config)

        with tempfile.TemporaryDirectory() as tmpdir:
            result_path, handle = dumper._open_output_file(Path(tmpdir) / "Sales.sql")
            handle.write("GO\n")
            handle.close()

            assert result_path == Path(tmpdir) / "Sales.sql.gz"
            with gzip.open(result_path, 'rt', encoding='utf-8') as f:
                assert f.read() == "GO\n"

    def test_open_without_compression(self):
        config = mock.MagicMock()
        config.get_output_settings.return_value = {}
        dumper = DatabaseDumper(config)

        with tempfile.TemporaryDirectory() as tmpdir:
            result_path, handle = dumper._open_output_file(Path(tmpdir) / "Sales.sql")
            handle.write("N'Zoë'")
            handle.close()

            assert result_path.read_text(encoding='utf-8') == "N'Zoë'"


class TestRun:
    """Tests for run method."""

    @pytest.fixture
    def mock_config(self):
        config = mock.MagicMock()
        config.select_databases.return_value = [{"name": "Sales", "instance": "primary"}]
        config.get_instance.return_value = {"server": "localhost", "user": "sa", "password": "secret"}
        config.get_dump_options.return_value = DumpOptions()
        return config

    @pytest.fixture
    def tables(self):
        return {TableIdentity("dbo", "Users"): ([ColumnInfo("id", "int", 1)], [(1,), (2,)])}

    def test_run_creates_output_directory(self, mock_config, make_connection, tables):
        with tempfile.TemporaryDirectory() as tmpdir:
            output_dir = Path(tmpdir) / "new_dumps"
            mock_config.get_output_settings.return_value = {"directory": str(output_dir)}

            with mock.patch.object(Dumper, "from_settings", side_effect=dumpers_for(make_connection(tables))):
                DatabaseDumper(mock_config).run()

            assert output_dir.exists()

    def test_run_writes_script_and_stats(self, mock_config, make_connection, tables):
        with tempfile.TemporaryDirectory() as tmpdir:
            mock_config.get_output_settings.return_value = {"directory": tmpdir, "timestamp_suffix": False}

            with mock.patch.object(Dumper, "from_settings", side_effect=dumpers_for(make_connection(tables))):
                stats = DatabaseDumper(mock_config).run()

            script = (Path(tmpdir) / "Sales.sql").read_text(encoding='utf-8')

        assert isinstance(stats, DumpStats)
        assert script.startswith(DISABLE_CONSTRAINTS)
        assert "  (2);" in script
        assert stats.total_tables == 1
        assert stats.total_rows == 2
        assert stats.errors == []

        db_stats = stats.databases[0]
        assert isinstance(db_stats, DatabaseStats)
        assert db_stats.success is True
        assert db_stats.tables[0].table == "Users"
        assert db_stats.tables[0].rows_dumped == 2

    def test_run_passes_database_settings(self, mock_config, make_connection, tables):
        with tempfile.TemporaryDirectory() as tmpdir:
            mock_config.get_output_settings.return_value = {"directory": tmpdir}

            with mock.patch.object(
                Dumper, "from_settings", side_effect=dumpers_for(make_connection(tables))
            ) as from_settings:
                DatabaseDumper(mock_config).run()

        args, kwargs = from_settings.call_args
        assert args == (mock_config.get_instance.return_value, "Sales")
        assert kwargs["options"] is mock_config.get_dump_options.return_value

    def test_run_records_errors_and_continues(self, mock_config, make_connection, tables):
        mock_config.select_databases.return_value = [
            {"name": "Broken", "instance": "primary"},
            {"name": "Sales", "instance": "primary"},
        ]
        broken = make_connection(tables, fail_after=1)

        with tempfile.TemporaryDirectory() as tmpdir:
            mock_config.get_output_settings.return_value = {"directory": tmpdir}

            with mock.patch.object(
                Dumper, "from_settings",
                side_effect=dumpers_for(broken, make_connection(tables))
            ):
                stats = DatabaseDumper(mock_config).run()

        assert len(stats.errors) == 1
        assert stats.errors[0]["database"] == "Broken"
        assert stats.errors[0]["table"] == "[dbo].[Users]"
        assert stats.databases[0].success is False
        assert stats.databases[1].success is True

    def test_run_unknown_instance(self, mock_config):
        mock_config.get_instance.side_effect = ValueError("Instance 'primary' not found in configuration")

        with tempfile.TemporaryDirectory() as tmpdir:
            mock_config.get_output_settings.return_value = {"directory": tmpdir}
            stats = DatabaseDumper(mock_config).run()

        assert stats.errors == [{
            "database": "Sales",
            "table": None,
            "error": "Instance 'primary' not found in configuration"
        }]

    def test_run_selects_databases_with_filters(self, mock_config):
        mock_config.select_databases.return_value = []

        with tempfile.TemporaryDirectory() as tmpdir:
            mock_config.get_output_settings.return_value = {"directory": tmpdir}

            result = DatabaseDumper(mock_config).run(
                database_filter="nonexistent",
                instance_filter="nonexistent"
            )

        mock_config.select_databases.assert_called_once_with("nonexistent", "nonexistent")
        assert result.databases == []


class TestOnProgress:
    """Tests for progress accounting."""

    def test_row_events_not_counted(self):
        config = mock.MagicMock()
        config.get_output_settings.return_value = {}
        dumper = DatabaseDumper(config)
        db_stats = DatabaseStats(name="Sales", instance="primary")

        dumper._on_progress(ProgressData("dbo", "Users", 0, False), db_stats)
        dumper._on_progress(ProgressData("dbo", "Users", 7, True), db_stats)

        assert db_stats.total_rows == 7
        assert dumper.stats.total_tables == 1
        assert len(db_stats.tables) == 1


def test_row_read_error_message():
    error = RowReadError(TableIdentity("dbo", "Users"), 3, "link failure")
    assert str(error) == "Failed reading [dbo].[Users] after 3 rows: link failure"
