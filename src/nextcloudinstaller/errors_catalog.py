"""Actionable error catalog for the Nextcloud installer."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "running_as_root": {
        "what": "This installer should not be run as root for security reasons.",
        "next": "Run it as a regular user with sudo privileges.",
    },
    "missing_dependency": {
        "what": "{tool} is required but not installed.",
        "next": "Install `{tool}` and try again.",
    },
    "insecure_http": {
        "what": "{label} uses insecure HTTP.",
        "next": "Switch to HTTPS or use `--allow-insecure-http` only for trusted mirrors.",
    },
    "checksum_mismatch": {
        "what": "Nextcloud download verification failed for {filename}.",
        "next": "Check your network or mirror and run the installer again.",
    },
    "php_ini_not_found": {
        "what": "PHP configuration file not found: {path}",
        "next": "Make sure `libapache2-mod-php` is installed for PHP {php_version}.",
    },
    "firewall_missing": {
        "what": "UFW is not installed but the firewall policy is `required`.",
        "next": "Install `ufw` or rerun with `--firewall-policy best-effort`.",
    },
    "step_failed": {
        "what": "Step `{step}` failed.",
        "next": "Fix the cause above, then rerun with `--resume` or `--only-step {step}`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
