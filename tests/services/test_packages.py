from nextcloudinstaller.services.packages import PackageService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def test_package_service_updates_upgrades_then_installs():
    calls = []

    def fake_run(cmd, **_kwargs):
        calls.append(cmd)

    PackageService(DummyLogger(), DummyConsole(), packages=("apache2", "php-apcu")).install(fake_run)

    assert calls == [
        ["sudo", "apt", "update"],
        ["sudo", "env", "DEBIAN_FRONTEND=noninteractive", "apt", "upgrade", "-y"],
        ["sudo", "env", "DEBIAN_FRONTEND=noninteractive", "apt", "install", "-y", "apache2", "php-apcu"],
    ]


def test_package_service_defaults_include_nextcloud_stack():
    service = PackageService(DummyLogger(), DummyConsole())

    for package in ("apache2", "mariadb-server", "libapache2-mod-php", "php-apcu", "php-mysql"):
        assert package in service.packages
