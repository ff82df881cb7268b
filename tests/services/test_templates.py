import pytest

from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.models import PhpRuntimeConfig, VirtualHostConfig
from nextcloudinstaller.services.templates import TemplateRenderer


def test_render_vhost_points_at_nextcloud_dir():
    content = TemplateRenderer().render_vhost(
        VirtualHostConfig(nextcloud_dir="/var/www/html/nextcloud", server_name="192.168.1.20")
    )

    assert "<VirtualHost *:80>" in content
    assert "DocumentRoot /var/www/html/nextcloud" in content
    assert "ServerName 192.168.1.20" in content
    assert "<Directory /var/www/html/nextcloud/>" in content
    assert "AllowOverride All" in content
    assert "Dav off" in content
    assert "SetEnv HOME /var/www/html/nextcloud" in content
    assert "${APACHE_LOG_DIR}/nextcloud_error.log" in content
    assert "${APACHE_LOG_DIR}/nextcloud_access.log combined" in content


def test_render_php_ini_uses_limits():
    content = TemplateRenderer().render_php_ini(
        PhpRuntimeConfig(memory_limit="1G", upload_limit="2G", post_limit="2G", execution_time=600)
    )

    assert "memory_limit = 1G" in content
    assert "upload_max_filesize = 2G" in content
    assert "post_max_size = 2G" in content
    assert "max_execution_time = 600" in content
    assert "opcache.enable=1" in content
    assert "apc.enable_cli=1" in content


def test_render_refuses_line_breaks_in_values():
    with pytest.raises(InstallerError, match="line break"):
        TemplateRenderer().render_vhost(
            VirtualHostConfig(nextcloud_dir="/var/www\nInclude /etc/shadow", server_name="localhost")
        )
