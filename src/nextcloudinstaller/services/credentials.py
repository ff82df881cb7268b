"""Admin credential prompts, secret generation and the credentials record."""

import base64
import os
import re
import secrets
from typing import Callable, Optional

from rich.prompt import Prompt

from nextcloudinstaller.constants import (
    DEFAULT_ADMIN_USER,
    GENERATED_PASSWORD_LENGTH,
    MIN_PASSWORD_LENGTH,
    SECRET_FILE_MODE,
)
from nextcloudinstaller.errors import CredentialValidationError, InstallerError

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
_STRIPPED_CHARS = str.maketrans("", "", "=+/")


def validate_username(value: Optional[str]) -> str:
    username = (value or "").strip() or DEFAULT_ADMIN_USER
    if not USERNAME_PATTERN.fullmatch(username):
        raise CredentialValidationError(
            "Username can only contain letters, numbers, hyphens, and underscores"
        )
    return username


def validate_password_length(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise CredentialValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    return password


def validate_password(password: str, confirmation: str) -> str:
    validate_password_length(password)
    if password != confirmation:
        raise CredentialValidationError("Passwords do not match, please try again")
    return password


def generate_password(
    length: int = GENERATED_PASSWORD_LENGTH,
    token_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> str:
    """Random base64 secret without ``=``, ``+`` or ``/``, exactly ``length`` long."""
    nbytes = max(16, length)
    while True:
        encoded = base64.b64encode(token_bytes(nbytes)).decode("ascii")
        cleaned = encoded.translate(_STRIPPED_CHARS)
        if len(cleaned) >= length:
            return cleaned[:length]


def _rich_prompt(console):
    def ask(message: str, password: bool = False) -> str:
        return Prompt.ask(
            message,
            console=console,
            password=password,
            default="",
            show_default=False,
        )

    return ask


class CredentialPrompter:
    """Asks for the admin identity until the answers are acceptable."""

    def __init__(self, logger, console, prompt: Optional[Callable[..., str]] = None):
        self.logger = logger
        self.console = console
        self.prompt = prompt or _rich_prompt(console)

    def _reject(self, exc: CredentialValidationError):
        self.console.print(f"[yellow][WARNING] {exc}[/yellow]")
        self.logger.debug("Credential rejected: %s", exc)

    def prompt_username(self) -> str:
        while True:
            raw = self.prompt(f"Enter admin username (default: {DEFAULT_ADMIN_USER})")
            try:
                return validate_username(raw)
            except CredentialValidationError as exc:
                self._reject(exc)

    def prompt_password(self) -> str:
        while True:
            password = self.prompt("Enter admin password", password=True)
            try:
                validate_password_length(password)
            except CredentialValidationError as exc:
                self._reject(exc)
                continue

            confirmation = self.prompt("Confirm admin password", password=True)
            try:
                return validate_password(password, confirmation)
            except CredentialValidationError as exc:
                self._reject(exc)


class CredentialStore:
    """Generates missing secrets and writes the plaintext credentials record."""

    def __init__(self, logger, console, password_factory: Callable[[], str] = generate_password):
        self.logger = logger
        self.console = console
        self.password_factory = password_factory

    def fill_missing_secrets(self, credentials):
        if not credentials.db_password:
            credentials.db_password = self.password_factory()
            self.console.print("[yellow][WARNING] Generated a new database password.[/yellow]")

        if not credentials.db_root_password:
            credentials.db_root_password = self.password_factory()
            while credentials.db_root_password == credentials.db_password:
                credentials.db_root_password = self.password_factory()
            self.console.print("[yellow][WARNING] Generated a new MariaDB root password.[/yellow]")

        return credentials

    @staticmethod
    def format_record(credentials, params) -> str:
        lines = [
            f"Nextcloud Admin User: {credentials.admin_user}",
            f"Nextcloud Admin Password: {credentials.admin_password}",
            f"Database Name: {params.db_name}",
            f"Database User: {params.db_user}",
            f"Database Password: {credentials.db_password}",
            f"MariaDB Root Password: {credentials.db_root_password}",
        ]
        return "\n".join(lines) + "\n"

    def write_record(self, path: str, credentials, params):
        content = self.format_record(credentials, params)
        try:
            if os.path.lexists(path):
                os.remove(path)
            flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
            fd = os.open(path, flags, SECRET_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                os.fchmod(file_obj.fileno(), SECRET_FILE_MODE)
                file_obj.write(content)
        except OSError as exc:
            raise InstallerError(f"Could not write credentials record '{path}': {exc}") from exc

        self.logger.info("Credentials record written to %s", path)
