import pytest

from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text(
        "nextcloud_version: '28.0.2'\nphp_memory_limit: 1G\nfirewall_policy: required\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["nextcloud_version"] == "28.0.2"
    assert loaded["php_memory_limit"] == "1G"
    assert loaded["firewall_policy"] == "required"


def test_config_loader_returns_empty_mapping_for_empty_file(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text("", encoding="utf-8")

    assert ConfigLoader().load(str(config_file)) == {}


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text("admin_password: hunter22\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(InstallerError, match="Unknown configuration keys: admin_password"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping_root(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(InstallerError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_reports_missing_file(tmp_path):
    with pytest.raises(InstallerError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "missing.yml"))


def test_config_loader_rejects_mistyped_values(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text("retry_count: three\n", encoding="utf-8")

    with pytest.raises(InstallerError, match="'retry_count' must be int"):
        ConfigLoader().load(str(config_file))


def test_config_loader_rejects_boolean_for_numeric_key(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text("php_execution_time: yes\n", encoding="utf-8")

    with pytest.raises(InstallerError, match="php_execution_time"):
        ConfigLoader().load(str(config_file))


def test_config_loader_accepts_numeric_php_sizes_and_flags(tmp_path):
    config_file = tmp_path / ".nextcloud-installer.yml"
    config_file.write_text(
        "php_upload_limit: 2048\nallow_insecure_http: true\ndownload_timeout: 30\n",
        encoding="utf-8",
    )

    loaded = ConfigLoader().load(str(config_file))

    assert loaded["php_upload_limit"] == 2048
    assert loaded["allow_insecure_http"] is True
    assert loaded["download_timeout"] == 30
