"""Apache virtual host configuration service."""

import os
from typing import Callable

from nextcloudinstaller.constants import (
    APACHE_DEFAULT_SITE,
    APACHE_MODULES,
    APACHE_SITE_NAME,
    APACHE_SITES_AVAILABLE,
)
from nextcloudinstaller.models import VirtualHostConfig


class ApacheService:
    """Installs the Nextcloud vhost and enables the modules it relies on."""

    def __init__(self, logger, console, renderer, filesystem_service):
        self.logger = logger
        self.console = console
        self.renderer = renderer
        self.filesystem_service = filesystem_service

    @property
    def site_path(self) -> str:
        return os.path.join(APACHE_SITES_AVAILABLE, APACHE_SITE_NAME)

    def render_site(self, nextcloud_dir: str, server_name: str) -> str:
        return self.renderer.render_vhost(
            VirtualHostConfig(nextcloud_dir=nextcloud_dir, server_name=server_name)
        )

    def configure(self, nextcloud_dir: str, server_name: str, run_cmd: Callable):
        self.console.print("[blue]Configuring Apache...[/blue]")
        content = self.render_site(nextcloud_dir, server_name)
        self.filesystem_service.install_file(content, self.site_path, run_cmd)

        run_cmd(["sudo", "a2ensite", APACHE_SITE_NAME])
        run_cmd(["sudo", "a2enmod", *APACHE_MODULES])
        # a2dissite exits non-zero when the default site is already gone
        run_cmd(["sudo", "a2dissite", APACHE_DEFAULT_SITE], check=False, capture_output=True)

        self.reload(run_cmd)
        self.console.print("[green][SUCCESS] Apache configured[/green]")

    def reload(self, run_cmd: Callable):
        run_cmd(["sudo", "systemctl", "reload", "apache2"])

    def restart(self, run_cmd: Callable):
        run_cmd(["sudo", "systemctl", "restart", "apache2"])
