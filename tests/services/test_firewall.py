import pytest

from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.services.firewall import FirewallService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))


class FakeHost:
    def __init__(self, tools):
        self.tools = set(tools)

    def has_tool(self, tool):
        return tool in self.tools


def _recorder(calls):
    def fake_run(cmd, **_kwargs):
        calls.append(cmd)

    return fake_run


def test_firewall_allows_http_and_https_when_ufw_present():
    calls = []
    service = FirewallService(DummyLogger(), DummyConsole(), FakeHost({"ufw"}), "best-effort")

    assert service.configure(_recorder(calls)) is True
    assert calls == [["sudo", "ufw", "allow", "80/tcp"], ["sudo", "ufw", "allow", "443/tcp"]]


def test_firewall_warns_and_continues_when_ufw_missing():
    calls = []
    console = DummyConsole()
    service = FirewallService(DummyLogger(), console, FakeHost(set()), "best-effort")

    assert service.configure(_recorder(calls)) is False
    assert calls == []
    assert any("UFW not installed" in line for line in console.lines)


def test_firewall_required_policy_fails_when_ufw_missing():
    service = FirewallService(DummyLogger(), DummyConsole(), FakeHost(set()), "required")

    with pytest.raises(InstallerError, match="UFW is not installed"):
        service.configure(_recorder([]))


def test_firewall_skip_policy_never_touches_ufw():
    calls = []
    service = FirewallService(DummyLogger(), DummyConsole(), FakeHost({"ufw"}), "skip")

    assert service.configure(_recorder(calls)) is False
    assert calls == []
