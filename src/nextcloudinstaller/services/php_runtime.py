"""PHP runtime discovery and configuration service."""

import os
import re
from typing import Callable, Optional

from nextcloudinstaller.constants import PHP_CONF_ROOT, PHP_INI_NAME
from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.errors_catalog import actionable_error
from nextcloudinstaller.models import PhpRuntimeConfig

PHP_VERSION_PATTERN = re.compile(r"^PHP\s+(\d+)\.(\d+)")
LOADED_INI_PATTERN = re.compile(r"^Loaded Configuration File\s*=>\s*(\S+)", re.MULTILINE)


class PhpRuntimeService:
    """Finds the installed PHP version and writes the Nextcloud overrides."""

    def __init__(self, logger, console, renderer, filesystem_service, validation_service):
        self.logger = logger
        self.console = console
        self.renderer = renderer
        self.filesystem_service = filesystem_service
        self.validation_service = validation_service

    def detect_version(self, run_cmd: Callable) -> str:
        result = run_cmd(["php", "-v"], capture_output=True)
        first_line = (result.stdout or "").splitlines()[0] if result.stdout else ""
        match = PHP_VERSION_PATTERN.match(first_line)
        if not match:
            raise InstallerError(f"Could not determine PHP version from: {first_line!r}")
        return f"{match.group(1)}.{match.group(2)}"

    def loaded_ini(self, run_cmd: Callable) -> Optional[str]:
        """Path of the php.ini the CLI loads, or ``None`` when PHP is absent."""
        try:
            result = run_cmd(["php", "-i"], check=False, capture_output=True)
        except InstallerError:
            self.logger.debug("PHP is not installed yet; no php.ini to back up.")
            return None

        if result.returncode != 0:
            return None
        match = LOADED_INI_PATTERN.search(result.stdout or "")
        if not match or match.group(1) == "(none)":
            return None
        return match.group(1)

    @staticmethod
    def apache_ini_path(php_version: str) -> str:
        return os.path.join(PHP_CONF_ROOT, php_version, "apache2", "php.ini")

    @staticmethod
    def override_path(php_version: str) -> str:
        return os.path.join(PHP_CONF_ROOT, php_version, "apache2", "conf.d", PHP_INI_NAME)

    def render_overrides(self, params) -> str:
        return self.renderer.render_php_ini(
            PhpRuntimeConfig(
                memory_limit=params.php_memory_limit,
                upload_limit=params.php_upload_limit,
                post_limit=params.php_post_limit,
                execution_time=int(params.php_execution_time),
            )
        )

    def configure(self, params, php_version: str, run_cmd: Callable, backup_dir: Optional[str] = None):
        self.console.print("[blue]Configuring PHP...[/blue]")
        self.validation_service.ensure_supported_php(php_version)

        php_ini = self.apache_ini_path(php_version)
        if not os.path.isfile(php_ini):
            raise InstallerError(
                actionable_error("php_ini_not_found", path=php_ini, php_version=php_version)
            )

        override = self.override_path(php_version)
        if backup_dir:
            self.filesystem_service.backup_file(override, backup_dir, run_cmd)
        self.filesystem_service.install_file(self.render_overrides(params), override, run_cmd)
        self.logger.info("PHP %s overrides written to %s", php_version, override)
