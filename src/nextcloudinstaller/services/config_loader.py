"""YAML configuration file support for the Nextcloud installer.

Keys mirror the long command-line options with underscores instead of
hyphens, e.g. ``php_memory_limit: 1G``. Options given on the command line
win over the file.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from nextcloudinstaller.errors import InstallerError

DEFAULT_CONFIG_NAME = ".nextcloud-installer.yml"

_TEXT = (str,)
_SIZE = (str, int)
_FLAG = (bool,)
_NUMBER = (int, float)


class ConfigLoader:
    """Reads the YAML mapping and rejects unknown keys or mistyped values."""

    KEY_TYPES = {
        "nextcloud_version": _TEXT,
        "download_base_url": _TEXT,
        "web_dir": _TEXT,
        "db_name": _TEXT,
        "db_user": _TEXT,
        "php_memory_limit": _SIZE,
        "php_upload_limit": _SIZE,
        "php_post_limit": _SIZE,
        "php_execution_time": (int,),
        "phone_region": _TEXT,
        "backup_root": _TEXT,
        "firewall_policy": _TEXT,
        "allow_insecure_http": _FLAG,
        "verbose": _FLAG,
        "log_file": _TEXT,
        "resume": _FLAG,
        "state_file": _TEXT,
        "download_timeout": _NUMBER,
        "retry_count": (int,),
        "retry_backoff_seconds": _NUMBER,
        "dry_run": _FLAG,
    }
    SUPPORTED_KEYS = frozenset(KEY_TYPES)

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.is_file():
            raise InstallerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise InstallerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise InstallerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed) - self.SUPPORTED_KEYS)
        if unknown:
            raise InstallerError(f"Unknown configuration keys: {', '.join(unknown)}")

        for key, value in parsed.items():
            self._check_type(key, value)
        return parsed

    def _check_type(self, key: str, value: Any):
        if value is None:
            return
        expected = self.KEY_TYPES[key]
        # YAML booleans are ints in Python; only flag keys accept them
        if isinstance(value, bool) and bool not in expected:
            valid = False
        else:
            valid = isinstance(value, expected)
        if not valid:
            names = " or ".join(kind.__name__ for kind in expected)
            raise InstallerError(
                f"Config key '{key}' must be {names}, got {type(value).__name__}: {value!r}"
            )
