import logging
import os
import subprocess
import uuid
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional

import requests
from rich.console import Console

from .constants import DIR_MODE, FILE_MODE
from .errors import InstallerError
from .errors_catalog import actionable_error
from .models import Credentials, InstallContext, InstallParameters, InstallStep
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.credentials import CredentialPrompter, CredentialStore
from .services.download import DownloadService
from .services.filesystem import FileSystemService
from .services.firewall import FirewallService
from .services.host import HostService
from .services.manifest import ManifestService
from .services.mariadb import MariaDBService
from .services.occ import OccService
from .services.packages import PackageService
from .services.php_runtime import PhpRuntimeService
from .services.state import StateService
from .services.templates import TemplateRenderer
from .services.validation import ValidationService
from .services.webserver import ApacheService

console = Console()
logger = logging.getLogger("nextcloudinstaller")

DEFAULT_STATE_DIR = os.path.join(os.path.expanduser("~"), ".nextcloud-installer")


class NextcloudInstaller:
    """Runs the ordered installation steps against the local machine."""

    def __init__(
        self,
        params: Optional[InstallParameters] = None,
        allow_insecure_http: bool = False,
        verbose: bool = False,
        resume: bool = False,
        state_file: Optional[str] = None,
        only_step: Optional[str] = None,
        dry_run: bool = False,
        download_timeout: float = 60.0,
        retry_count: int = 1,
        retry_backoff_seconds: float = 2.0,
        prompt: Optional[Callable[..., str]] = None,
    ):
        self.params = params or InstallParameters()
        self.allow_insecure_http = allow_insecure_http
        self.verbose = verbose
        self.resume = resume
        self.only_step = only_step
        self.dry_run = dry_run

        self.validation_service = ValidationService(allow_insecure_http=self.allow_insecure_http)
        self.validation_service.validate_parameters(self.params, logger, console)

        self.state_file = state_file or os.path.join(DEFAULT_STATE_DIR, "run-state.json")
        self.manifest_file = os.path.join(
            os.path.dirname(self.state_file) or ".", "run-manifest.json"
        )
        self.state_service = StateService(state_file=self.state_file, logger=logger)
        self.manifest_service = ManifestService(manifest_file=self.manifest_file, logger=logger)
        self.state: Optional[Dict[str, Any]] = None
        self.current_step_name: Optional[str] = None

        self.credentials = Credentials()
        self.context = self._build_context()

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.archive_service = ArchiveService()
        self.host_service = HostService(logger=logger, console=console)
        self.renderer = TemplateRenderer()
        self.prompter = CredentialPrompter(logger=logger, console=console, prompt=prompt)
        self.credential_store = CredentialStore(logger=logger, console=console)
        self.package_service = PackageService(logger=logger, console=console)
        self.mariadb_service = MariaDBService(logger=logger, console=console)
        self.download_service = DownloadService(
            validation_service=self.validation_service,
            logger=logger,
            console=console,
            requests_module=requests,
            timeout=download_timeout,
            retry_count=retry_count,
            retry_backoff_seconds=retry_backoff_seconds,
        )
        self.apache_service = ApacheService(
            logger=logger,
            console=console,
            renderer=self.renderer,
            filesystem_service=self.filesystem_service,
        )
        self.php_service = PhpRuntimeService(
            logger=logger,
            console=console,
            renderer=self.renderer,
            filesystem_service=self.filesystem_service,
            validation_service=self.validation_service,
        )
        self.occ_service = OccService(
            logger=logger,
            console=console,
            nextcloud_dir=self.params.nextcloud_dir,
            web_user=self.params.web_user,
        )
        self.firewall_service = FirewallService(
            logger=logger,
            console=console,
            host_service=self.host_service,
            policy=self.params.firewall_policy,
        )

    def _build_context(self) -> InstallContext:
        backup_dir = FileSystemService.backup_dir_for(self.params.backup_root)
        return InstallContext(
            run_id=uuid.uuid4().hex[:10],
            backup_dir=backup_dir,
            credentials_file=os.path.join(backup_dir, "credentials.txt"),
        )

    def steps(self) -> List[InstallStep]:
        return [
            InstallStep("check_preflight", "Check privileges and required tools", self.check_preflight),
            InstallStep("prompt_credentials", "Collect admin credentials", self.prompt_credentials),
            InstallStep(
                "backup_existing_configs",
                "Back up existing Apache and PHP configuration",
                self.backup_existing_configs,
            ),
            InstallStep(
                "generate_credentials",
                "Generate database secrets and write the credentials record",
                self.generate_credentials,
            ),
            InstallStep("install_packages", "Install OS packages", self.install_packages),
            InstallStep("secure_database", "Harden MariaDB", self.secure_database),
            InstallStep("setup_database", "Create Nextcloud database and user", self.setup_database),
            InstallStep(
                "download_release",
                "Download, verify and extract the Nextcloud release",
                self.download_release,
            ),
            InstallStep("deploy_release", "Move release into place and fix permissions", self.deploy_release),
            InstallStep("configure_webserver", "Configure the Apache virtual host", self.configure_webserver),
            InstallStep("configure_php", "Write PHP runtime overrides", self.configure_php),
            InstallStep(
                "run_unattended_install",
                "Run occ maintenance:install",
                self.run_unattended_install,
            ),
            InstallStep(
                "configure_nextcloud",
                "Set trusted domains, cache backend and phone region",
                self.configure_nextcloud,
            ),
            InstallStep("setup_firewall", "Open HTTP and HTTPS in UFW", self.setup_firewall),
            InstallStep("cleanup", "Remove downloaded files", self.cleanup),
            InstallStep("display_results", "Print the installation summary", self.display_results),
        ]

    def step_names(self) -> List[str]:
        return [step.name for step in self.steps()]

    def _build_state_parameters(self) -> Dict[str, Any]:
        return asdict(self.params)

    def _initialize_state(self) -> bool:
        needs_existing = self.resume or bool(self.only_step)
        if needs_existing and not self.state_service.exists():
            if self.only_step:
                raise InstallerError(
                    f"No state file found at {self.state_file}. "
                    "Run the full installation once before retrying a single step."
                )
            logger.info("No state file found at %s, starting a fresh run.", self.state_file)

        state, resumed = self.state_service.initialize(
            parameters=self._build_state_parameters(),
            context=asdict(self.context),
            resume=needs_existing,
        )
        self.state = state

        if resumed:
            context_data = state.get("context")
            if not isinstance(context_data, dict):
                raise InstallerError("State file is missing install context. Start a fresh run without --resume.")
            self.context = InstallContext(**context_data)
            self.credentials = Credentials(**state.get("credentials", {}))
            for secret in self.credentials.secrets():
                self.command_runner.register_secret(secret)

            if state.get("status") == "success" and not self.only_step:
                raise InstallerError(
                    "The state file already belongs to a successful run. Remove it or choose another --state-file."
                )
            logger.info(
                "Resuming previous run '%s' at step '%s'.",
                self.context.run_id,
                state.get("current_step") or "<none>",
            )
            state["status"] = "running"
            self.state_service.save(state)
        else:
            logger.info("Run state initialized at %s", self.state_file)

        return resumed

    def _save_context(self):
        if self.state:
            self.state_service.set_context(self.state, asdict(self.context))

    def _save_credentials(self):
        if self.state:
            self.state_service.set_credentials(self.state, asdict(self.credentials))

    def _run_step(self, step: InstallStep, skip_when_completed: bool = True):
        name = step.name
        if (
            self.resume
            and self.state
            and skip_when_completed
            and self.state_service.is_step_completed(self.state, name)
        ):
            logger.info("Skipping completed step from state: %s", name)
            self.manifest_service.step_started(name, details={"resumed": True})
            self.manifest_service.step_finished(name, "skipped", details={"resumed": True})
            return None, True

        if self.state:
            self.state_service.mark_step_started(self.state, name)
        self.manifest_service.step_started(name)
        self.current_step_name = name
        logger.debug("Starting step %s: %s", name, step.description)

        try:
            result = step.action()
        except BaseException as exc:
            message = str(exc) or exc.__class__.__name__
            if self.state:
                self.state_service.mark_step_failed(self.state, name, message)
            self.manifest_service.step_finished(name, "failed", error=message)
            raise

        if self.state:
            self.state_service.mark_step_completed(self.state, name)
        self.manifest_service.step_finished(name, "success")
        self.current_step_name = None
        return result, False

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def _step_attempted_before(self, step_name: str) -> bool:
        """True when ``step_name`` was started by an earlier run as well as this one."""
        if not self.state:
            return False
        record = self.state["steps"].get(step_name, {})
        return record.get("attempts", 0) > 1

    def _require_secrets(self, *names: str):
        missing = [name for name in names if not getattr(self.credentials, name)]
        if missing:
            raise InstallerError(
                f"Missing credentials: {', '.join(missing)}. A successful run drops secrets from the "
                f"state file; they remain in {self.context.credentials_file}. Start a fresh run instead."
            )

    def _register_credentials(self):
        for secret in self.credentials.secrets():
            self.command_runner.register_secret(secret)

    def check_preflight(self):
        logger.info("Checking dependencies...")
        self.host_service.check_preflight()

    def prompt_credentials(self):
        console.print()
        console.print("[bold]🔐 Nextcloud Admin Account Setup[/bold]")
        console.print("================================")

        self.credentials.admin_user = self.prompter.prompt_username()
        self.credentials.admin_password = self.prompter.prompt_password()
        self._register_credentials()
        self._save_credentials()

        console.print(
            f"[green][SUCCESS] Admin credentials set for user: {self.credentials.admin_user}[/green]"
        )

    def backup_existing_configs(self):
        logger.info("Creating backup directory: %s", self.context.backup_dir)
        self.filesystem_service.ensure_private_dir(self.context.backup_dir)

        if os.path.isfile(self.apache_service.site_path):
            console.print("[yellow][WARNING] Existing Nextcloud Apache config found, backing up...[/yellow]")
            self.filesystem_service.backup_file(
                self.apache_service.site_path, self.context.backup_dir, self._run_cmd
            )

        php_ini = self.php_service.loaded_ini(self._run_cmd)
        if php_ini:
            self.filesystem_service.backup_file(
                php_ini, self.context.backup_dir, self._run_cmd, name="php.ini.backup"
            )

    def generate_credentials(self):
        logger.info("Setting up remaining credentials...")
        self.credential_store.fill_missing_secrets(self.credentials)
        self._register_credentials()
        self._save_credentials()

        self.filesystem_service.ensure_private_dir(self.context.backup_dir)
        self.credential_store.write_record(self.context.credentials_file, self.credentials, self.params)
        self.manifest_service.add_artifact("credentials_file", self.context.credentials_file)
        console.print(
            f"[green][SUCCESS] All credentials saved to: {self.context.credentials_file}[/green]"
        )

    def install_packages(self):
        self.package_service.install(self._run_cmd)

    def secure_database(self):
        self._require_secrets("db_root_password")
        self.mariadb_service.secure(self.credentials.db_root_password, self._run_cmd)

    def setup_database(self):
        self._require_secrets("db_password", "db_root_password")
        self.mariadb_service.provision(
            db_name=self.params.db_name,
            db_user=self.params.db_user,
            db_password=self.credentials.db_password,
            root_password=self.credentials.db_root_password,
            run_cmd=self._run_cmd,
        )

    def download_release(self):
        console.print(f"[blue]Downloading Nextcloud {self.params.nextcloud_version}...[/blue]")
        self.filesystem_service.ensure_dir(self.params.work_dir)
        self.filesystem_service.remove_matching(
            os.path.join(self.params.work_dir, "nextcloud-*.tar.bz2*")
        )

        digest = self.download_service.download_release(self.params)
        self.manifest_service.set_release(
            version=self.params.nextcloud_version,
            url=self.params.download_url,
            sha256=digest,
        )

        console.print("[blue]Extracting Nextcloud...[/blue]")
        self.archive_service.safe_extract_tar(
            self.params.archive_path,
            self.params.work_dir,
            root_name=os.path.basename(self.params.staging_dir),
        )

    def deploy_release(self):
        console.print("[blue]Installing Nextcloud files...[/blue]")
        nextcloud_dir = self.params.nextcloud_dir
        if not os.path.isdir(self.params.staging_dir):
            if not (os.path.isdir(nextcloud_dir) and self._step_attempted_before("deploy_release")):
                raise InstallerError(
                    f"Extracted release not found at {self.params.staging_dir}. "
                    "Rerun with `--only-step download_release` first."
                )
            # an earlier attempt already moved the release into place
            logger.info("Release already deployed to %s, reapplying permissions", nextcloud_dir)
        else:
            if os.path.isdir(nextcloud_dir):
                console.print("[yellow][WARNING] Existing Nextcloud installation found, backing up...[/yellow]")
                self.filesystem_service.ensure_private_dir(self.context.backup_dir)
                previous = os.path.join(self.context.backup_dir, "nextcloud_old")
                suffix = 1
                while os.path.exists(previous):
                    suffix += 1
                    previous = os.path.join(self.context.backup_dir, f"nextcloud_old_{suffix}")
                self.filesystem_service.move_tree(nextcloud_dir, previous, self._run_cmd)

            self.filesystem_service.move_tree(self.params.staging_dir, nextcloud_dir, self._run_cmd)

        logger.info("Setting file permissions...")
        self.filesystem_service.normalize_tree(
            nextcloud_dir,
            owner=self.params.web_user,
            dir_mode=DIR_MODE,
            file_mode=FILE_MODE,
            run_cmd=self._run_cmd,
        )
        console.print("[green][SUCCESS] Nextcloud files installed[/green]")

    def _server_ip(self) -> str:
        if not self.context.server_ip:
            self.context.server_ip = self.host_service.primary_address(self._run_cmd)
            self._save_context()
        return self.context.server_ip

    def configure_webserver(self):
        self.apache_service.configure(self.params.nextcloud_dir, self._server_ip(), self._run_cmd)
        self.manifest_service.add_artifact("apache_site", self.apache_service.site_path)

    def configure_php(self):
        self.context.php_version = self.php_service.detect_version(self._run_cmd)
        self._save_context()

        self.filesystem_service.ensure_private_dir(self.context.backup_dir)
        self.php_service.configure(
            self.params,
            self.context.php_version,
            self._run_cmd,
            backup_dir=self.context.backup_dir,
        )
        self.apache_service.restart(self._run_cmd)
        self.manifest_service.add_artifact(
            "php_overrides", self.php_service.override_path(self.context.php_version)
        )
        console.print("[green][SUCCESS] PHP configured[/green]")

    def run_unattended_install(self):
        console.print("[blue]Running Nextcloud installation...[/blue]")
        if self.occ_service.is_installed(self._run_cmd):
            console.print(
                "[yellow][WARNING] Nextcloud reports it is already installed, skipping maintenance:install[/yellow]"
            )
            return

        self._require_secrets("admin_password", "db_password")
        self.occ_service.maintenance_install(self.params, self.credentials, self._run_cmd)
        console.print("[green][SUCCESS] Nextcloud installation completed[/green]")

    def configure_nextcloud(self):
        console.print("[blue]Applying additional Nextcloud configuration...[/blue]")
        self.occ_service.apply_post_install_settings(
            server_ip=self._server_ip(),
            phone_region=self.params.phone_region,
            run_cmd=self._run_cmd,
        )
        console.print("[green][SUCCESS] Nextcloud configured[/green]")

    def setup_firewall(self):
        self.firewall_service.configure(self._run_cmd)

    def cleanup(self):
        logger.info("Cleaning up temporary files...")
        self.filesystem_service.remove_matching(
            os.path.join(self.params.work_dir, "nextcloud-*.tar.bz2*")
        )
        self.filesystem_service.cleanup_dir(self.params.staging_dir)

    def display_results(self):
        server_ip = self.context.server_ip or "<server-ip>"
        console.print()
        console.print("[bold green]=== Nextcloud Installation Complete! ===[/bold green]")
        console.print()
        console.print("📋 Installation Summary:")
        console.print(f"  • Nextcloud Version: {self.params.nextcloud_version}")
        console.print(f"  • Installation Directory: {self.params.nextcloud_dir}")
        console.print(f"  • Admin Username: {self.credentials.admin_user}")
        console.print(f"  • Database Name: {self.params.db_name}")
        console.print(f"  • Database User: {self.params.db_user}")
        console.print()
        console.print("🌐 Access your Nextcloud:")
        console.print("  • Local: http://localhost/nextcloud")
        console.print(f"  • Network: http://{server_ip}/nextcloud")
        console.print()
        console.print(f"🔐 Credentials saved to: {self.context.credentials_file}")
        console.print()
        console.print("🚀 Next Steps:")
        console.print("  1. Access Nextcloud in your browser")
        console.print("  2. Consider setting up HTTPS with: sudo certbot --apache")
        console.print("  3. Configure external access in your router if needed")
        console.print("  4. Set up regular backups")
        console.print()
        console.print(
            f"[yellow][WARNING] All passwords are saved in: {self.context.credentials_file}[/yellow]"
        )

    def print_plan(self):
        console.print("[bold blue]Dry run: no changes will be made.[/bold blue]")
        console.print(f"Nextcloud {self.params.nextcloud_version} from {self.params.download_url}")
        console.print(f"Install directory: {self.params.nextcloud_dir}")
        console.print(f"Backup directory: {self.context.backup_dir}")
        console.print(f"Firewall policy: {self.params.firewall_policy}")
        for index, step in enumerate(self._selected_steps(), start=1):
            console.print(f"  {index:2d}. {step.name}: {step.description}")

    def _selected_steps(self) -> List[InstallStep]:
        steps = self.steps()
        if not self.only_step:
            return steps

        for step in steps:
            if step.name == self.only_step:
                return [step]
        raise InstallerError(
            f"Unknown step '{self.only_step}'. Valid steps: {', '.join(self.step_names())}"
        )

    def run(self) -> int:
        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None
        started = False

        try:
            console.print("[bold]🚀 Starting Nextcloud Installation[/bold]")
            console.print("============================================")
            logger.info("Starting Nextcloud installer...")

            selected_steps = self._selected_steps()
            if self.dry_run:
                self.print_plan()
                return 0

            self._initialize_state()
            self.manifest_service.start_run(
                run_id=self.context.run_id,
                parameters=self._build_state_parameters(),
            )
            started = True

            for step in selected_steps:
                self._run_step(step, skip_when_completed=not self.only_step)

            if self.state:
                remaining = self.state_service.remaining_steps(self.state, self.step_names())
                if remaining:
                    self.state_service.mark_status(self.state, "running")
                else:
                    self.state_service.clear_credentials(self.state)
                    self.state_service.mark_status(self.state, "success")
            manifest_status = "success"
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            if self.state:
                self.state_service.mark_status(self.state, "aborted", "Operation cancelled by user.")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            return exit_code
        except InstallerError as exc:
            console.print(f"[bold red][ERROR][/bold red] {exc}")
            logger.error(str(exc))
            self._report_failed_step(str(exc))
            manifest_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            self._report_failed_step(str(exc))
            manifest_error = str(exc)
            return exit_code
        finally:
            if started:
                self.manifest_service.finalize(manifest_status, error=manifest_error)

    def _report_failed_step(self, error: str):
        failed_step = self.current_step_name
        if failed_step:
            console.print(f"[red]{actionable_error('step_failed', step=failed_step)}[/red]")
        if self.state:
            self.state_service.mark_status(self.state, "failed", error)
