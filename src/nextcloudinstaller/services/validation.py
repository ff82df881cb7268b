"""Input validation helpers for the Nextcloud installer.

Every value that ends up inside a generated config file, an SQL statement or
an ``occ`` argument passes through here first.
"""

import os
import re
from urllib.parse import urlparse

from packaging.version import InvalidVersion, Version

from nextcloudinstaller.constants import FIREWALL_POLICIES, MIN_PHP_VERSION
from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.errors_catalog import actionable_error

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_]{1,64}")
PHP_SIZE_PATTERN = re.compile(r"[1-9][0-9]*[KMG]?")
PHONE_REGION_PATTERN = re.compile(r"[A-Z]{2}")
SYSTEM_USER_PATTERN = re.compile(r"[a-z_][a-z0-9_-]*")


class ValidationService:
    """Validates installation parameters and URL protocol policy."""

    def __init__(self, allow_insecure_http: bool = False):
        self.allow_insecure_http = allow_insecure_http

    def is_url(self, location: str) -> bool:
        scheme = urlparse(location).scheme.lower()
        return scheme in {"http", "https"}

    def enforce_https_policy(self, location: str, label: str, logger, console):
        if not self.is_url(location):
            raise InstallerError(f"{label} is not a valid HTTP(S) URL: {location}")

        scheme = urlparse(location).scheme.lower()
        if scheme == "http" and not self.allow_insecure_http:
            raise InstallerError(actionable_error("insecure_http", label=label))

        if scheme == "http" and self.allow_insecure_http:
            logger.warning("Insecure HTTP enabled for %s: %s", label, location)
            console.print(
                f"[yellow]Warning:[/yellow] Using insecure HTTP for {label}. "
                "The published checksum is fetched from the same mirror."
            )

    def validate_release_version(self, value: str) -> str:
        try:
            parsed = Version(value)
        except InvalidVersion as exc:
            raise InstallerError(f"Invalid Nextcloud version: {value!r}") from exc

        if str(parsed) != value or parsed.local is not None:
            raise InstallerError(
                f"Nextcloud version must be written in canonical form (for example 28.0.2): {value!r}"
            )
        return value

    def validate_identifier(self, value: str, label: str) -> str:
        if not IDENTIFIER_PATTERN.fullmatch(value or ""):
            raise InstallerError(
                f"{label} may only contain letters, numbers and underscores (max 64): {value!r}"
            )
        return value

    def validate_php_size(self, value: str, label: str) -> str:
        if not PHP_SIZE_PATTERN.fullmatch(str(value)):
            raise InstallerError(f"{label} must look like 512M, 1G or 1024K: {value!r}")
        return str(value)

    def validate_positive_int(self, value, label: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise InstallerError(f"{label} must be an integer: {value!r}") from exc
        if number <= 0:
            raise InstallerError(f"{label} must be greater than zero: {value!r}")
        return number

    def validate_phone_region(self, value: str) -> str:
        if not PHONE_REGION_PATTERN.fullmatch(value or ""):
            raise InstallerError(
                f"Phone region must be an ISO 3166-1 alpha-2 code such as US or DE: {value!r}"
            )
        return value

    def validate_absolute_path(self, value: str, label: str) -> str:
        if not value or not os.path.isabs(value) or any(char in value for char in "\n\r\"'"):
            raise InstallerError(f"{label} must be an absolute path without quotes: {value!r}")
        return os.path.normpath(value)

    def validate_system_user(self, value: str) -> str:
        if not SYSTEM_USER_PATTERN.fullmatch(value or ""):
            raise InstallerError(f"Invalid system user name: {value!r}")
        return value

    def validate_firewall_policy(self, value: str) -> str:
        if value not in FIREWALL_POLICIES:
            raise InstallerError(
                f"Firewall policy must be one of: {', '.join(FIREWALL_POLICIES)}. Got {value!r}."
            )
        return value

    def ensure_supported_php(self, php_version: str):
        try:
            parsed = Version(php_version)
        except InvalidVersion as exc:
            raise InstallerError(f"Could not parse PHP version: {php_version!r}") from exc

        if parsed < Version(MIN_PHP_VERSION):
            raise InstallerError(
                f"PHP {php_version} is too old for Nextcloud. PHP {MIN_PHP_VERSION} or newer is required."
            )

    def validate_parameters(self, params, logger, console):
        self.validate_release_version(params.nextcloud_version)
        self.enforce_https_policy(params.download_base_url, "download base URL", logger, console)
        self.validate_absolute_path(params.web_dir, "Web directory")
        self.validate_absolute_path(params.work_dir, "Work directory")
        self.validate_absolute_path(params.backup_root, "Backup root")
        self.validate_identifier(params.db_name, "Database name")
        self.validate_identifier(params.db_user, "Database user")
        self.validate_php_size(params.php_memory_limit, "PHP memory limit")
        self.validate_php_size(params.php_upload_limit, "PHP upload limit")
        self.validate_php_size(params.php_post_limit, "PHP post limit")
        self.validate_positive_int(params.php_execution_time, "PHP execution time")
        self.validate_phone_region(params.phone_region)
        self.validate_system_user(params.web_user)
        self.validate_firewall_policy(params.firewall_policy)
