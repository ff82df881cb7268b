"""UFW firewall rule insertion."""

from typing import Callable

from nextcloudinstaller.constants import FIREWALL_PORTS
from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.errors_catalog import actionable_error


class FirewallService:
    """Opens HTTP and HTTPS in UFW according to the configured policy.

    ``best-effort`` warns and continues when UFW is absent, ``required``
    aborts, ``skip`` leaves the firewall untouched.
    """

    def __init__(self, logger, console, host_service, policy: str):
        self.logger = logger
        self.console = console
        self.host_service = host_service
        self.policy = policy

    def configure(self, run_cmd: Callable) -> bool:
        self.console.print("[blue]Configuring firewall...[/blue]")

        if self.policy == "skip":
            self.console.print("[yellow][WARNING] Firewall policy is `skip`; no rules added.[/yellow]")
            return False

        if not self.host_service.has_tool("ufw"):
            if self.policy == "required":
                raise InstallerError(actionable_error("firewall_missing"))
            self.console.print(
                "[yellow][WARNING] UFW not installed, skipping firewall configuration[/yellow]"
            )
            self.logger.warning("UFW not installed, skipping firewall configuration")
            return False

        for port in FIREWALL_PORTS:
            run_cmd(["sudo", "ufw", "allow", port])
        self.console.print("[green][SUCCESS] Firewall rules added for HTTP and HTTPS[/green]")
        return True
