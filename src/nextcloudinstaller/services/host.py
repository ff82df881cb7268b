"""Host inspection helpers: privileges, tool presence and primary address."""

import ipaddress
import os
import shutil
from typing import Callable, Optional

from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.errors_catalog import actionable_error

FALLBACK_ADDRESS = "127.0.0.1"


class HostService:
    """Answers questions about the machine the installer runs on."""

    REQUIRED_TOOLS = ("sudo",)
    OPTIONAL_TOOLS = ("php", "mysql", "ufw")

    def __init__(self, logger, console, which: Callable[[str], Optional[str]] = shutil.which):
        self.logger = logger
        self.console = console
        self.which = which

    @staticmethod
    def is_root() -> bool:
        return hasattr(os, "geteuid") and os.geteuid() == 0

    def has_tool(self, tool: str) -> bool:
        return self.which(tool) is not None

    def check_preflight(self):
        if self.is_root():
            raise InstallerError(actionable_error("running_as_root"))

        for tool in self.REQUIRED_TOOLS:
            if not self.has_tool(tool):
                raise InstallerError(actionable_error("missing_dependency", tool=tool))

        for tool in self.OPTIONAL_TOOLS:
            self.logger.debug("Optional tool %s present: %s", tool, self.has_tool(tool))

    def primary_address(self, run_cmd: Callable) -> str:
        result = run_cmd(["hostname", "-I"], check=False, capture_output=True)
        for token in (result.stdout or "").split():
            try:
                return str(ipaddress.ip_address(token))
            except ValueError:
                continue

        self.logger.warning("Could not detect a network address, falling back to %s", FALLBACK_ADDRESS)
        self.console.print(
            f"[yellow][WARNING] No network address detected, using {FALLBACK_ADDRESS}.[/yellow]"
        )
        return FALLBACK_ADDRESS
