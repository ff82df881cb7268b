import logging
import os

import click
from rich.logging import RichHandler

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
    FIREWALL_POLICIES,
)
from .core import NextcloudInstaller
from .errors import InstallerError
from .models import InstallParameters
from .services.config_loader import DEFAULT_CONFIG_NAME, ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_NAME} if present.",
)
@click.option(
    "--nextcloud-version",
    required=False,
    help=f"Nextcloud release to install (default: {DEFAULT_NEXTCLOUD_VERSION}).",
)
@click.option("--download-base-url", required=False, help="Base URL hosting the release archives.")
@click.option("--web-dir", required=False, help=f"Web root directory (default: {DEFAULT_WEB_DIR}).")
@click.option("--db-name", required=False, help=f"Database name (default: {DEFAULT_DB_NAME}).")
@click.option("--db-user", required=False, help=f"Database user (default: {DEFAULT_DB_USER}).")
@click.option("--php-memory-limit", required=False, help="PHP memory_limit (default: 512M).")
@click.option("--php-upload-limit", required=False, help="PHP upload_max_filesize (default: 1G).")
@click.option("--php-post-limit", required=False, help="PHP post_max_size (default: 1G).")
@click.option(
    "--php-execution-time",
    required=False,
    type=int,
    default=None,
    help="PHP max_execution_time in seconds (default: 300).",
)
@click.option(
    "--phone-region",
    required=False,
    help=f"Default phone region for Nextcloud (default: {DEFAULT_PHONE_REGION}).",
)
@click.option(
    "--backup-root",
    required=False,
    type=click.Path(),
    help=f"Directory that receives the timestamped backup folder (default: {DEFAULT_BACKUP_ROOT}).",
)
@click.option(
    "--firewall-policy",
    required=False,
    type=click.Choice(FIREWALL_POLICIES),
    help="What to do about UFW: best-effort (warn if missing), required, or skip.",
)
@click.option(
    "--allow-insecure-http",
    is_flag=True,
    default=None,
    help="Allow an HTTP download base URL (insecure). By default only HTTPS is accepted.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--resume",
    is_flag=True,
    default=None,
    help="Resume a previously interrupted run using the execution state file.",
)
@click.option(
    "--state-file",
    required=False,
    type=click.Path(),
    help="Path to the run state file (default: ~/.nextcloud-installer/run-state.json).",
)
@click.option(
    "--only-step",
    required=False,
    help="Re-run a single named step using the context stored in the state file.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Validate settings and print the installation plan without changing the system.",
)
@click.option(
    "--download-timeout",
    required=False,
    type=float,
    default=None,
    help="HTTP download timeout in seconds.",
)
@click.option(
    "--retry-count",
    required=False,
    type=int,
    default=None,
    help="Number of retries for transient download failures.",
)
@click.option(
    "--retry-backoff-seconds",
    required=False,
    type=float,
    default=None,
    help="Backoff time in seconds between retries.",
)
def main(
    config,
    nextcloud_version,
    download_base_url,
    web_dir,
    db_name,
    db_user,
    php_memory_limit,
    php_upload_limit,
    php_post_limit,
    php_execution_time,
    phone_region,
    backup_root,
    firewall_policy,
    allow_insecure_http,
    verbose,
    log_file,
    resume,
    state_file,
    only_step,
    dry_run,
    download_timeout,
    retry_count,
    retry_backoff_seconds,
):
    """Install Nextcloud with Apache, PHP and MariaDB on a Debian-based board."""
    logger = logging.getLogger("nextcloudinstaller")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        params = InstallParameters(
            nextcloud_version=str(
                _resolve_option(
                    nextcloud_version,
                    config_values,
                    "nextcloud_version",
                    default=DEFAULT_NEXTCLOUD_VERSION,
                )
            ),
            download_base_url=_resolve_option(
                download_base_url,
                config_values,
                "download_base_url",
                default=DEFAULT_DOWNLOAD_BASE_URL,
            ),
            web_dir=_resolve_option(web_dir, config_values, "web_dir", default=DEFAULT_WEB_DIR),
            db_name=_resolve_option(db_name, config_values, "db_name", default=DEFAULT_DB_NAME),
            db_user=_resolve_option(db_user, config_values, "db_user", default=DEFAULT_DB_USER),
            php_memory_limit=str(
                _resolve_option(
                    php_memory_limit,
                    config_values,
                    "php_memory_limit",
                    default=DEFAULT_PHP_MEMORY_LIMIT,
                )
            ),
            php_upload_limit=str(
                _resolve_option(
                    php_upload_limit,
                    config_values,
                    "php_upload_limit",
                    default=DEFAULT_PHP_UPLOAD_LIMIT,
                )
            ),
            php_post_limit=str(
                _resolve_option(
                    php_post_limit,
                    config_values,
                    "php_post_limit",
                    default=DEFAULT_PHP_POST_LIMIT,
                )
            ),
            php_execution_time=_resolve_option(
                php_execution_time,
                config_values,
                "php_execution_time",
                default=DEFAULT_PHP_EXECUTION_TIME,
            ),
            phone_region=_resolve_option(
                phone_region, config_values, "phone_region", default=DEFAULT_PHONE_REGION
            ),
            backup_root=_resolve_option(
                backup_root, config_values, "backup_root", default=DEFAULT_BACKUP_ROOT
            ),
            firewall_policy=_resolve_option(
                firewall_policy,
                config_values,
                "firewall_policy",
                default=DEFAULT_FIREWALL_POLICY,
            ),
        )

        installer = NextcloudInstaller(
            params=params,
            allow_insecure_http=bool(
                _resolve_option(allow_insecure_http, config_values, "allow_insecure_http", default=False)
            ),
            verbose=verbose,
            resume=bool(_resolve_option(resume, config_values, "resume", default=False)),
            state_file=_resolve_option(state_file, config_values, "state_file"),
            only_step=only_step,
            dry_run=bool(_resolve_option(dry_run, config_values, "dry_run", default=False)),
            download_timeout=float(
                _resolve_option(download_timeout, config_values, "download_timeout", default=60.0)
            ),
            retry_count=int(_resolve_option(retry_count, config_values, "retry_count", default=1)),
            retry_backoff_seconds=float(
                _resolve_option(
                    retry_backoff_seconds,
                    config_values,
                    "retry_backoff_seconds",
                    default=2.0,
                )
            ),
        )
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(installer.run())


if __name__ == "__main__":
    main()
