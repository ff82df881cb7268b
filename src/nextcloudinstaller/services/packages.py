"""APT package installation service."""

from typing import Callable, Iterable

from nextcloudinstaller.constants import APT_PACKAGES

APT_ENV = ["sudo", "env", "DEBIAN_FRONTEND=noninteractive", "apt"]


class PackageService:
    """Updates the system and installs the Nextcloud package stack."""

    def __init__(self, logger, console, packages: Iterable[str] = APT_PACKAGES):
        self.logger = logger
        self.console = console
        self.packages = list(packages)

    def install(self, run_cmd: Callable):
        self.console.print("[blue]Updating system packages...[/blue]")
        run_cmd(["sudo", "apt", "update"])
        run_cmd(APT_ENV + ["upgrade", "-y"])

        self.console.print("[blue]Installing required packages...[/blue]")
        self.logger.info("Installing packages: %s", " ".join(self.packages))
        run_cmd(APT_ENV + ["install", "-y", *self.packages])
        self.console.print("[green][SUCCESS] Packages installed successfully[/green]")
