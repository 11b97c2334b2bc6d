"""
Configuration loading for SQL Server Data Dumper.
"""

import logging
import os
import re
from typing import Any, Optional

import yaml

from .models import DumpOptions

DEFAULT_INSTANCE = 'primary'


class ConfigLoader:
    """Loads configuration from a YAML file, expanding ``${VAR}`` references."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_path: str):
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> dict[str, Any]:
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        return self._resolve_env_vars(config)

    def _resolve_env_vars(self, obj: Any) -> Any:
        """Recursively resolve environment variables in config."""
        if isinstance(obj, str):
            return self.ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), ''), obj)
        elif isinstance(obj, dict):
            return {k: self._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._resolve_env_vars(item) for item in obj]
        return obj

    def get_instance(self, instance_name: str) -> dict[str, Any]:
        """Get server instance settings."""
        instances = self.config.get('instances', {})
        if instance_name not in instances:
            raise ValueError(f"Instance '{instance_name}' not found in configuration")
        return instances[instance_name]

    def get_databases(self) -> list[dict[str, Any]]:
        """Get list of databases to dump."""
        return self.config.get('databases', [])

    def select_databases(
        self,
        database: Optional[str] = None,
        instance: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """
        Databases to dump, narrowed to one name and/or one instance.

        Databases without an ``instance`` key belong to the default instance.
        """
        databases = self.get_databases()

        if database:
            databases = [db for db in databases if db['name'] == database]
            if not databases:
                logging.warning(f"No database named '{database}' found in configuration")

        if instance:
            databases = [db for db in databases if db.get('instance', DEFAULT_INSTANCE) == instance]
            if not databases:
                logging.warning(f"No databases found for instance '{instance}'")

        return databases

    def get_defaults(self) -> dict[str, Any]:
        return self.config.get('defaults', {})

    def get_dump_options(self, db_config: dict[str, Any]) -> DumpOptions:
        """Effective script options for a database, database settings winning."""
        return DumpOptions.from_configs(self.get_defaults(), db_config)

    def get_output_settings(self) -> dict[str, Any]:
        return self.config.get('output', {})

    def get_logging_settings(self) -> dict[str, Any]:
        return self.config.get('logging', {})
