"""Wrapper around Nextcloud's ``occ`` administrative command."""

import json
import os
from typing import Callable, List, Optional

from nextcloudinstaller.constants import MEMCACHE_LOCAL_BACKEND
from nextcloudinstaller.errors import InstallerError


class OccService:
    """Runs ``occ`` as the web server user for setup and system settings."""

    def __init__(self, logger, console, nextcloud_dir: str, web_user: str):
        self.logger = logger
        self.console = console
        self.nextcloud_dir = nextcloud_dir
        self.web_user = web_user

    def command(self, *args: str) -> List[str]:
        return ["sudo", "-u", self.web_user, "php", os.path.join(self.nextcloud_dir, "occ"), *args]

    def is_installed(self, run_cmd: Callable) -> bool:
        result = run_cmd(self.command("status", "--output=json"), check=False, capture_output=True)
        if result.returncode != 0:
            return False

        # occ may print warnings before the JSON document
        output = result.stdout or ""
        start = output.find("{")
        if start < 0:
            return False
        try:
            status = json.loads(output[start:])
        except json.JSONDecodeError:
            self.logger.debug("Unparseable occ status output: %s", output)
            return False
        return bool(status.get("installed"))

    def maintenance_install(self, params, credentials, run_cmd: Callable):
        run_cmd(
            self.command(
                "maintenance:install",
                "--database",
                "mysql",
                "--database-name",
                params.db_name,
                "--database-user",
                params.db_user,
                "--database-pass",
                credentials.db_password,
                "--database-host",
                "localhost",
                "--admin-user",
                credentials.admin_user,
                "--admin-pass",
                credentials.admin_password,
                "--data-dir",
                params.data_dir,
            )
        )

    def set_system_value(self, key: str, value: str, run_cmd: Callable, index: Optional[int] = None):
        args = ["config:system:set", key]
        if index is not None:
            args.append(str(index))
        args.append(f"--value={value}")
        run_cmd(self.command(*args))

    def apply_post_install_settings(self, server_ip: str, phone_region: str, run_cmd: Callable):
        if not server_ip:
            raise InstallerError("Server address is unknown; cannot set trusted domains.")

        self.set_system_value("trusted_domains", "localhost", run_cmd, index=0)
        self.set_system_value("trusted_domains", server_ip, run_cmd, index=1)
        self.set_system_value("memcache.local", MEMCACHE_LOCAL_BACKEND, run_cmd)
        self.set_system_value("default_phone_region", phone_region, run_cmd)
