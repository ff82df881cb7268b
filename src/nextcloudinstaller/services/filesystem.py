"""Filesystem helpers for the Nextcloud installer.

Paths owned by the current user are handled directly; system paths go
through ``sudo`` via the injected ``run_cmd``.
"""

import glob
import logging
import os
import shutil
import stat
import tempfile
from datetime import datetime
from typing import Callable, Optional

from rich.console import Console

from nextcloudinstaller.constants import BACKUP_DIR_PREFIX, CONFIG_FILE_MODE, PRIVATE_DIR_MODE
from nextcloudinstaller.errors import InstallerError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    @staticmethod
    def backup_dir_for(backup_root: str, now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        return os.path.join(backup_root, f"{BACKUP_DIR_PREFIX}{stamp}")

    def ensure_dir(self, path: str) -> str:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise InstallerError(f"Could not create directory '{path}': {exc}") from exc
        return path

    def ensure_private_dir(self, path: str) -> str:
        """Create ``path`` with mode 0700, refusing one another user prepared."""
        try:
            os.makedirs(path, mode=PRIVATE_DIR_MODE, exist_ok=True)
            info = os.lstat(path)
        except OSError as exc:
            raise InstallerError(f"Could not create directory '{path}': {exc}") from exc

        if not stat.S_ISDIR(info.st_mode) or info.st_uid != os.getuid():
            raise InstallerError(
                f"Refusing to use '{path}': it is not a directory owned by the current user."
            )
        try:
            os.chmod(path, PRIVATE_DIR_MODE)
        except OSError as exc:
            raise InstallerError(f"Could not restrict permissions on '{path}': {exc}") from exc
        return path

    def backup_file(
        self,
        path: str,
        backup_dir: str,
        run_cmd: Callable,
        name: Optional[str] = None,
    ) -> Optional[str]:
        if not os.path.isfile(path):
            return None

        destination = os.path.join(backup_dir, name or os.path.basename(path))
        if os.path.exists(destination):
            # the first copy is the pre-install original
            self.logger.info("Backup of %s already present at %s", path, destination)
            return destination
        run_cmd(["sudo", "cp", "-p", path, destination])
        self.logger.info("Backed up %s to %s", path, destination)
        return destination

    def move_tree(self, source: str, destination: str, run_cmd: Callable):
        run_cmd(["sudo", "mv", source, destination])

    def normalize_tree(
        self,
        root: str,
        owner: str,
        dir_mode: int,
        file_mode: int,
        run_cmd: Callable,
    ):
        run_cmd(["sudo", "chown", "-R", f"{owner}:{owner}", root])
        run_cmd(["sudo", "find", root, "-type", "d", "-exec", "chmod", f"{dir_mode:o}", "{}", "+"])
        run_cmd(["sudo", "find", root, "-type", "f", "-exec", "chmod", f"{file_mode:o}", "{}", "+"])

    def install_file(
        self,
        content: str,
        destination: str,
        run_cmd: Callable,
        mode: int = CONFIG_FILE_MODE,
    ):
        fd, temp_path = tempfile.mkstemp(prefix="nextcloud-installer-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
            run_cmd(
                [
                    "sudo",
                    "install",
                    "-m",
                    f"{mode:o}",
                    "-o",
                    "root",
                    "-g",
                    "root",
                    temp_path,
                    destination,
                ]
            )
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)
        self.logger.info("Installed %s", destination)

    def remove_matching(self, pattern: str):
        for path in glob.glob(pattern):
            try:
                os.remove(path)
                self.logger.debug("Removed file: %s", path)
            except OSError as exc:
                self.logger.warning("Could not remove %s: %s", path, exc)

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)
