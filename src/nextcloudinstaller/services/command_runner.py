"""Subprocess execution with secret redaction.

Every shell-out of the installer (``sudo``, ``apt``, ``mysql``, ``occ``)
goes through :class:`CommandRunner`, so the admin and database passwords
registered here never reach the log or an error message verbatim.
"""

import subprocess
from typing import List, Optional

from nextcloudinstaller.errors import InstallerError

REDACTED = "********"
STDERR_TAIL_LINES = 20


class CommandRunner:
    """Runs external commands and turns failures into ``InstallerError``."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout
        self._secrets: List[str] = []

    def register_secret(self, value: Optional[str]):
        if value and value not in self._secrets:
            self._secrets.append(value)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def _failure_message(self, cmd_str: str, result: subprocess.CompletedProcess) -> str:
        message = f"Command failed ({result.returncode}): {cmd_str}"
        stderr = (result.stderr or "").strip()
        if stderr:
            tail = "\n".join(stderr.splitlines()[-STDERR_TAIL_LINES:])
            message = f"{message}\n{self.redact(tail)}"
        return message

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = self.redact(" ".join(cmd))
        self.logger.debug("Executing: %s", cmd_str)
        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                input=input_text,
            )
        except FileNotFoundError as exc:
            raise InstallerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise InstallerError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise InstallerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", self.redact(result.stdout.strip()))

        if result.returncode == 0:
            return result

        message = self._failure_message(cmd_str, result)
        if check:
            raise InstallerError(message)

        self.logger.debug(message)
        return result
