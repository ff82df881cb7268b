import subprocess

import pytest

from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.models import InstallParameters
from nextcloudinstaller.services.php_runtime import PhpRuntimeService
from nextcloudinstaller.services.templates import TemplateRenderer
from nextcloudinstaller.services.validation import ValidationService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class RecordingFileSystem:
    def __init__(self):
        self.installed = []
        self.backed_up = []

    def backup_file(self, path, backup_dir, run_cmd, name=None):
        self.backed_up.append((path, backup_dir))

    def install_file(self, content, destination, run_cmd, mode=0o644):
        self.installed.append((destination, content))


def _service(filesystem=None):
    return PhpRuntimeService(
        DummyLogger(),
        DummyConsole(),
        TemplateRenderer(),
        filesystem or RecordingFileSystem(),
        ValidationService(),
    )


def _stdout(text, returncode=0):
    def fake_run(cmd, **_kwargs):
        return subprocess.CompletedProcess(cmd, returncode, stdout=text, stderr="")

    return fake_run


def test_detect_version_reads_major_minor():
    output = "PHP 8.2.7 (cli) (built: Jun  9 2023 19:37:27) (NTS)\nCopyright (c) The PHP Group\n"

    assert _service().detect_version(_stdout(output)) == "8.2"


def test_detect_version_rejects_unexpected_output():
    with pytest.raises(InstallerError, match="Could not determine PHP version"):
        _service().detect_version(_stdout("command not found\n"))


def test_loaded_ini_parses_php_info():
    output = "Configuration File (php.ini) Path => /etc/php/8.2/cli\nLoaded Configuration File => /etc/php/8.2/cli/php.ini\n"

    assert _service().loaded_ini(_stdout(output)) == "/etc/php/8.2/cli/php.ini"


def test_loaded_ini_is_none_when_php_missing():
    def missing(cmd, **_kwargs):
        raise InstallerError("Command not found: php")

    assert _service().loaded_ini(missing) is None
    assert _service().loaded_ini(_stdout("Loaded Configuration File => (none)\n")) is None


def test_ini_paths_follow_debian_layout():
    assert PhpRuntimeService.apache_ini_path("8.2") == "/etc/php/8.2/apache2/php.ini"
    assert PhpRuntimeService.override_path("8.2") == "/etc/php/8.2/apache2/conf.d/99-nextcloud.ini"


def test_configure_installs_overrides(monkeypatch, tmp_path):
    php_ini = tmp_path / "php.ini"
    php_ini.write_text("[PHP]\n", encoding="utf-8")
    monkeypatch.setattr(PhpRuntimeService, "apache_ini_path", staticmethod(lambda _version: str(php_ini)))
    filesystem = RecordingFileSystem()

    _service(filesystem).configure(InstallParameters(php_memory_limit="768M"), "8.2", _stdout(""))

    destination, content = filesystem.installed[0]
    assert destination == "/etc/php/8.2/apache2/conf.d/99-nextcloud.ini"
    assert "memory_limit = 768M" in content
    assert filesystem.backed_up == []


def test_configure_backs_up_previous_overrides_first(monkeypatch, tmp_path):
    php_ini = tmp_path / "php.ini"
    php_ini.write_text("[PHP]\n", encoding="utf-8")
    monkeypatch.setattr(PhpRuntimeService, "apache_ini_path", staticmethod(lambda _version: str(php_ini)))
    events = []
    filesystem = RecordingFileSystem()
    filesystem.backup_file = lambda path, backup_dir, run_cmd, name=None: events.append(("backup", path, backup_dir))
    filesystem.install_file = lambda content, destination, run_cmd, mode=0o644: events.append(("install", destination))

    _service(filesystem).configure(InstallParameters(), "8.2", _stdout(""), backup_dir="/tmp/backup")

    override = "/etc/php/8.2/apache2/conf.d/99-nextcloud.ini"
    assert events == [("backup", override, "/tmp/backup"), ("install", override)]


def test_configure_fails_when_php_ini_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(
        PhpRuntimeService,
        "apache_ini_path",
        staticmethod(lambda _version: str(tmp_path / "missing.ini")),
    )

    with pytest.raises(InstallerError, match="PHP configuration file not found"):
        _service().configure(InstallParameters(), "8.2", _stdout(""))


def test_configure_rejects_old_php():
    with pytest.raises(InstallerError, match="too old"):
        _service().configure(InstallParameters(), "7.4", _stdout(""))
