"""Release download service with progress reporting and checksum validation."""

import hashlib
import os
import re
import time
from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from nextcloudinstaller.errors import ChecksumMismatchError, InstallerError
from nextcloudinstaller.errors_catalog import actionable_error

SHA256_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


class DownloadService:
    """Fetches release archives and their published SHA-256 digests."""

    def __init__(
        self,
        validation_service,
        logger,
        console,
        requests_module,
        timeout: float = 60.0,
        retry_count: int = 0,
        retry_backoff_seconds: float = 0.0,
    ):
        self.validation_service = validation_service
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.timeout = timeout
        self.retry_count = retry_count
        self.retry_backoff_seconds = retry_backoff_seconds

    @staticmethod
    def parse_digest(text: str) -> str:
        """Extract the hex digest from a ``sha256sum``-style line."""
        tokens = (text or "").split()
        if not tokens or not SHA256_PATTERN.fullmatch(tokens[0]):
            raise ChecksumMismatchError("Published checksum file is malformed.")
        return tokens[0].lower()

    @staticmethod
    def sha256_of(path: str) -> str:
        hasher = hashlib.sha256()
        with open(path, "rb") as file_obj:
            for chunk in iter(lambda: file_obj.read(1024 * 1024), b""):
                hasher.update(chunk)
        return hasher.hexdigest()

    def _with_retries(self, description: str, action):
        max_attempts = max(1, self.retry_count + 1)
        for attempt in range(1, max_attempts + 1):
            try:
                return action()
            except self.requests.RequestException as exc:
                if attempt >= max_attempts:
                    raise InstallerError(f"Download failed for {description}: {exc}") from exc
                self.logger.warning(
                    "Download of %s failed on attempt %s/%s. Retrying in %.1fs: %s",
                    description,
                    attempt,
                    max_attempts,
                    self.retry_backoff_seconds,
                    exc,
                )
                time.sleep(self.retry_backoff_seconds)

    def fetch_published_digest(self, url: str) -> str:
        self.validation_service.enforce_https_policy(url, "checksum URL", self.logger, self.console)
        self.logger.info("Fetching published checksum from %s", url)

        def fetch():
            response = self.requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.text

        return self.parse_digest(self._with_retries("checksum", fetch))

    def download_file(
        self,
        url: str,
        dest_path: str,
        description: str = "Downloading...",
        expected_sha256: Optional[str] = None,
    ):
        self.logger.info("Downloading %s to %s", url, dest_path)
        self.validation_service.enforce_https_policy(url, description, self.logger, self.console)
        os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)

        def fetch() -> str:
            hasher = hashlib.sha256()
            with self.requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    "•",
                    TimeElapsedColumn(),
                    console=self.console,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(dest_path, "wb") as file_obj:
                        for chunk in response.iter_content(chunk_size=8192):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            hasher.update(chunk)
                            progress.update(task, advance=len(chunk))
            return hasher.hexdigest()

        downloaded_sha = self._with_retries(description, fetch)

        if expected_sha256 and downloaded_sha != expected_sha256.lower():
            try:
                os.remove(dest_path)
            except OSError:
                pass
            self.logger.error(
                "Checksum mismatch for %s. Expected %s, but got %s.",
                description,
                expected_sha256,
                downloaded_sha,
            )
            raise ChecksumMismatchError(
                actionable_error("checksum_mismatch", filename=os.path.basename(dest_path))
            )

        return downloaded_sha

    def download_release(self, params) -> str:
        """Download the pinned release, verify it and return the verified digest."""
        expected = self.fetch_published_digest(params.checksum_url)
        digest_path = f"{params.archive_path}.sha256"
        with open(digest_path, "w", encoding="utf-8") as file_obj:
            file_obj.write(f"{expected}  {params.archive_name}\n")

        self.download_file(
            params.download_url,
            params.archive_path,
            description=f"Downloading Nextcloud {params.nextcloud_version}...",
            expected_sha256=expected,
        )
        self.console.print("[green][SUCCESS] Nextcloud download verified[/green]")
        return expected
