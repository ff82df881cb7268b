import subprocess

from nextcloudinstaller.services.templates import TemplateRenderer
from nextcloudinstaller.services.webserver import ApacheService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class RecordingFileSystem:
    def __init__(self):
        self.installed = []

    def install_file(self, content, destination, run_cmd, mode=0o644):
        self.installed.append((destination, content, mode))


def test_apache_service_installs_site_and_enables_modules():
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    filesystem = RecordingFileSystem()
    service = ApacheService(DummyLogger(), DummyConsole(), TemplateRenderer(), filesystem)

    service.configure("/var/www/html/nextcloud", "10.0.0.5", fake_run)

    destination, content, mode = filesystem.installed[0]
    assert destination == "/etc/apache2/sites-available/nextcloud.conf"
    assert "ServerName 10.0.0.5" in content
    assert mode == 0o644

    commands = [cmd for cmd, _ in calls]
    assert commands == [
        ["sudo", "a2ensite", "nextcloud.conf"],
        ["sudo", "a2enmod", "rewrite", "headers", "env", "dir", "mime", "setenvif", "ssl"],
        ["sudo", "a2dissite", "000-default"],
        ["sudo", "systemctl", "reload", "apache2"],
    ]
    assert calls[2][1]["check"] is False
