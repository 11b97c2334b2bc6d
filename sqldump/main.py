#!/usr/bin/env python3
"""
SQL Server Data Dumper - CLI Entry Point
========================================
Writes the rows of configured SQL Server databases as replayable INSERT
scripts, one file per database.
"""

import argparse
import logging
import sys

import yaml

from .config import ConfigLoader
from .database_dumper import DatabaseDumper
from .models import DumpStats
from .utils import print_dry_run_info, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sqldump',
        description='Export SQL Server table data as INSERT scripts'
    )
    parser.add_argument('-c', '--config', default='config.yaml',
                        help='YAML configuration file (default: config.yaml)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log at DEBUG level')
    parser.add_argument('--dry-run', action='store_true',
                        help='List the databases and script options without connecting')
    parser.add_argument('-d', '--database',
                        help='Only dump this configured database')
    parser.add_argument('-i', '--instance',
                        help='Only dump databases of this configured instance')
    return parser


def load_config(path: str) -> ConfigLoader:
    """Load the configuration, exiting with status 1 when it is unusable."""
    try:
        return ConfigLoader(path)
    except FileNotFoundError:
        print(f"Error: Configuration file '{path}' not found")
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file: {e}")
    sys.exit(1)


def log_summary(stats: DumpStats) -> None:
    logging.info("=" * 50)
    logging.info(
        f"Dumped {len(stats.databases)} database(s), "
        f"{stats.total_tables} table(s), {stats.total_rows} row(s)"
    )
    if stats.errors:
        logging.warning(f"Errors: {len(stats.errors)}")
        for err in stats.errors:
            location = f"{err['database']}/{err['table']}" if err['table'] else err['database']
            logging.warning(f"  - {location}: {err['error']}")


def main():
    args = build_parser().parse_args()
    config = load_config(args.config)

    log_settings = config.get_logging_settings()
    if args.verbose:
        log_settings['level'] = 'DEBUG'
    setup_logging(log_settings)

    if args.dry_run:
        logging.info("DRY RUN MODE - No data will be dumped")
        try:
            print_dry_run_info(config.select_databases(args.database, args.instance), config.get_defaults())
        except ValueError as e:
            logging.error(f"Invalid dump options: {e}")
            sys.exit(1)
        sys.exit(0)

    try:
        stats = DatabaseDumper(config).run(database_filter=args.database, instance_filter=args.instance)
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)

    log_summary(stats)
    if stats.errors:
        sys.exit(1)


if __name__ == '__main__':
    main()
