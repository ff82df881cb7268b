import hashlib

import pytest
from rich.console import Console

from nextcloudinstaller.errors import ChecksumMismatchError, InstallerError
from nextcloudinstaller.models import InstallParameters
from nextcloudinstaller.services.download import DownloadService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class FakeValidationService:
    def enforce_https_policy(self, *_args, **_kwargs):
        return None


class FakeResponse:
    def __init__(self, payload: bytes):
        self.payload = payload
        self.text = payload.decode("utf-8", errors="replace")
        self.headers = {"Content-Length": str(len(payload))}

    def raise_for_status(self):
        return None

    def iter_content(self, chunk_size=8192):
        yield self.payload

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, *_args, **_kwargs):
        self.calls.append(url)
        payload = self.responses[url]
        if isinstance(payload, Exception):
            raise payload
        return FakeResponse(payload)


class FlakyRequestsModule(FakeRequestsModule):
    def get(self, url, *args, **kwargs):
        self.calls.append(url)
        if len(self.calls) == 1:
            raise self.RequestException("temporary download error")
        return FakeResponse(self.responses[url])


def _service(requests_module, **kwargs):
    return DownloadService(
        validation_service=FakeValidationService(),
        logger=DummyLogger(),
        console=Console(record=True),
        requests_module=requests_module,
        **kwargs,
    )


def test_parse_digest_accepts_sha256sum_format():
    digest = "a" * 64
    assert DownloadService.parse_digest(f"{digest}  nextcloud-28.0.2.tar.bz2\n") == digest


@pytest.mark.parametrize("text", ["", "not-a-digest  file", "abc123"])
def test_parse_digest_rejects_malformed_files(text):
    with pytest.raises(ChecksumMismatchError):
        DownloadService.parse_digest(text)


def test_download_file_accepts_matching_checksum(tmp_path):
    payload = b"checksum-ok"
    expected = hashlib.sha256(payload).hexdigest()
    url = "https://example.com/nextcloud.tar.bz2"
    service = _service(FakeRequestsModule({url: payload}))
    destination = tmp_path / "nextcloud.tar.bz2"

    digest = service.download_file(url, str(destination), expected_sha256=expected)

    assert digest == expected
    assert destination.read_bytes() == payload


def test_download_file_rejects_checksum_mismatch_and_removes_file(tmp_path):
    url = "https://example.com/nextcloud.tar.bz2"
    service = _service(FakeRequestsModule({url: b"tampered"}))
    destination = tmp_path / "nextcloud.tar.bz2"

    with pytest.raises(ChecksumMismatchError, match="verification failed"):
        service.download_file(url, str(destination), expected_sha256="0" * 64)

    assert not destination.exists()


def test_checksum_mismatch_is_not_retried(tmp_path):
    url = "https://example.com/nextcloud.tar.bz2"
    requests_module = FakeRequestsModule({url: b"tampered"})
    service = _service(requests_module, retry_count=3)

    with pytest.raises(ChecksumMismatchError):
        service.download_file(url, str(tmp_path / "a.tar.bz2"), expected_sha256="0" * 64)

    assert requests_module.calls == [url]


def test_download_service_retries_transient_request_errors(tmp_path):
    url = "https://example.com/nextcloud.tar.bz2"
    requests_module = FlakyRequestsModule({url: b"retried"})
    service = _service(requests_module, retry_count=1, retry_backoff_seconds=0.0)

    dest = tmp_path / "nextcloud.tar.bz2"
    service.download_file(url, str(dest), description="release")

    assert len(requests_module.calls) == 2
    assert dest.read_bytes() == b"retried"


def test_download_service_gives_up_after_retries(tmp_path):
    url = "https://example.com/nextcloud.tar.bz2"
    requests_module = FakeRequestsModule({url: FakeRequestsModule.RequestException("offline")})
    service = _service(requests_module, retry_count=1, retry_backoff_seconds=0.0)

    with pytest.raises(InstallerError, match="Download failed"):
        service.download_file(url, str(tmp_path / "a.tar.bz2"))

    assert len(requests_module.calls) == 2


def test_download_release_verifies_against_published_digest(tmp_path):
    params = InstallParameters(work_dir=str(tmp_path))
    payload = b"release-bytes"
    digest = hashlib.sha256(payload).hexdigest()
    requests_module = FakeRequestsModule(
        {
            params.checksum_url: f"{digest}  {params.archive_name}\n".encode("utf-8"),
            params.download_url: payload,
        }
    )

    verified = _service(requests_module).download_release(params)

    assert verified == digest
    assert (tmp_path / params.archive_name).read_bytes() == payload
    assert (tmp_path / f"{params.archive_name}.sha256").read_text(encoding="utf-8").startswith(digest)
