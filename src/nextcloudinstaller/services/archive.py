"""Archive extraction helpers for the Nextcloud installer."""

import os
import shutil
import tarfile
from pathlib import Path

from nextcloudinstaller.errors import InstallerError


class ArchiveService:
    """Encapsulates safe release tarball extraction logic."""

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def _check_member(self, base: Path, member: tarfile.TarInfo):
        target_path = (base / member.name).resolve()
        if os.path.isabs(member.name) or not self.is_within_dir(base, target_path):
            raise InstallerError(
                f"Unsafe archive entry detected: `{member.name}`. "
                "Archive extraction aborted to prevent path traversal."
            )

        if member.issym() or member.islnk():
            if member.issym():
                link_target = (target_path.parent / member.linkname).resolve()
            else:
                link_target = (base / member.linkname).resolve()
            if os.path.isabs(member.linkname) or not self.is_within_dir(base, link_target):
                raise InstallerError(
                    f"Unsafe archive entry detected: `{member.name}` links outside the release."
                )

        if member.isdev() or member.isfifo():
            raise InstallerError(f"Unsafe archive entry detected: `{member.name}` is a device file.")

    def _check_root(self, member: tarfile.TarInfo, root_name: str):
        name = os.path.normpath(member.name)
        if name != root_name and not name.startswith(root_name + os.sep):
            raise InstallerError(
                f"Unexpected archive entry `{member.name}` outside the `{root_name}/` directory. "
                "Archive extraction aborted."
            )

    def safe_extract_tar(self, archive_path: str, destination_dir: str, root_name: str) -> str:
        """Extract ``archive_path`` into ``destination_dir`` and return ``destination_dir/root_name``.

        Nothing is written unless every member passes the traversal checks and
        lives under ``root_name``. If extraction fails part-way the partially written tree is removed.
        """
        base = Path(destination_dir).resolve()
        extracted_root = base / root_name

        try:
            with tarfile.open(archive_path, "r:*") as tar_ref:
                members = tar_ref.getmembers()
                for member in members:
                    self._check_member(base, member)
                    self._check_root(member, root_name)

                if extracted_root.exists():
                    shutil.rmtree(extracted_root)

                try:
                    if hasattr(tarfile, "data_filter"):
                        tar_ref.extractall(base, members=members, filter="data")
                    else:
                        tar_ref.extractall(base, members=members)
                except (tarfile.TarError, OSError):
                    shutil.rmtree(extracted_root, ignore_errors=True)
                    raise
        except tarfile.TarError as exc:
            raise InstallerError(f"Invalid release archive: {archive_path}: {exc}") from exc
        except OSError as exc:
            raise InstallerError(f"Could not extract {archive_path}: {exc}") from exc

        if not extracted_root.is_dir():
            raise InstallerError(
                f"Release archive {archive_path} did not contain a `{root_name}/` directory."
            )
        return str(extracted_root)
