"""Shared domain models for the Nextcloud installer."""

import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from .constants import (
    DEFAULT_BACKUP_ROOT,
    DEFAULT_DB_NAME,
    DEFAULT_DB_USER,
    DEFAULT_DOWNLOAD_BASE_URL,
    DEFAULT_FIREWALL_POLICY,
    DEFAULT_NEXTCLOUD_VERSION,
    DEFAULT_PHONE_REGION,
    DEFAULT_PHP_EXECUTION_TIME,
    DEFAULT_PHP_MEMORY_LIMIT,
    DEFAULT_PHP_POST_LIMIT,
    DEFAULT_PHP_UPLOAD_LIMIT,
    DEFAULT_WEB_DIR,
    DEFAULT_WEB_USER,
    DEFAULT_WORK_DIR,
)


@dataclass(frozen=True)
class InstallParameters:
    """Installation inputs fixed for the whole run."""

    nextcloud_version: str = DEFAULT_NEXTCLOUD_VERSION
    download_base_url: str = DEFAULT_DOWNLOAD_BASE_URL
    web_dir: str = DEFAULT_WEB_DIR
    db_name: str = DEFAULT_DB_NAME
    db_user: str = DEFAULT_DB_USER
    php_memory_limit: str = DEFAULT_PHP_MEMORY_LIMIT
    php_upload_limit: str = DEFAULT_PHP_UPLOAD_LIMIT
    php_post_limit: str = DEFAULT_PHP_POST_LIMIT
    php_execution_time: int = DEFAULT_PHP_EXECUTION_TIME
    phone_region: str = DEFAULT_PHONE_REGION
    web_user: str = DEFAULT_WEB_USER
    work_dir: str = DEFAULT_WORK_DIR
    backup_root: str = DEFAULT_BACKUP_ROOT
    firewall_policy: str = DEFAULT_FIREWALL_POLICY

    @property
    def archive_name(self) -> str:
        return f"nextcloud-{self.nextcloud_version}.tar.bz2"

    @property
    def download_url(self) -> str:
        return f"{self.download_base_url.rstrip('/')}/{self.archive_name}"

    @property
    def checksum_url(self) -> str:
        return f"{self.download_url}.sha256"

    @property
    def nextcloud_dir(self) -> str:
        return os.path.join(self.web_dir, "nextcloud")

    @property
    def data_dir(self) -> str:
        return os.path.join(self.nextcloud_dir, "data")

    @property
    def archive_path(self) -> str:
        return os.path.join(self.work_dir, self.archive_name)

    @property
    def staging_dir(self) -> str:
        return os.path.join(self.work_dir, "nextcloud")


@dataclass
class Credentials:
    """Admin identity plus database secrets (generated when left empty)."""

    admin_user: str = ""
    admin_password: str = ""
    db_password: str = ""
    db_root_password: str = ""

    def secrets(self):
        return [value for value in (self.admin_password, self.db_password, self.db_root_password) if value]


@dataclass
class InstallContext:
    """Values discovered while the run progresses."""

    run_id: str
    backup_dir: str
    credentials_file: str
    server_ip: Optional[str] = None
    php_version: Optional[str] = None


@dataclass(frozen=True)
class InstallStep:
    name: str
    description: str
    action: Callable[[], object] = field(repr=False, compare=False)


@dataclass(frozen=True)
class VirtualHostConfig:
    nextcloud_dir: str
    server_name: str


@dataclass(frozen=True)
class PhpRuntimeConfig:
    memory_limit: str
    upload_limit: str
    post_limit: str
    execution_time: int
