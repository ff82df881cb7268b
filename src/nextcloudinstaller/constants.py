"""Static defaults shared by the installer services."""

DEFAULT_NEXTCLOUD_VERSION = "28.0.2"
DEFAULT_DOWNLOAD_BASE_URL = "https://download.nextcloud.com/server/releases"

DEFAULT_ADMIN_USER = "admin"
MIN_PASSWORD_LENGTH = 8
GENERATED_PASSWORD_LENGTH = 12

DEFAULT_DB_NAME = "nextcloud"
DEFAULT_DB_USER = "nextclouduser"

DEFAULT_WEB_DIR = "/var/www/html"
DEFAULT_WEB_USER = "www-data"
DEFAULT_WORK_DIR = "/tmp"
DEFAULT_BACKUP_ROOT = "/tmp"
BACKUP_DIR_PREFIX = "nextcloud_install_backup_"

DEFAULT_PHP_MEMORY_LIMIT = "512M"
DEFAULT_PHP_UPLOAD_LIMIT = "1G"
DEFAULT_PHP_POST_LIMIT = "1G"
DEFAULT_PHP_EXECUTION_TIME = 300
MIN_PHP_VERSION = "8.0"

DEFAULT_PHONE_REGION = "US"

FIREWALL_POLICIES = ("best-effort", "required", "skip")
DEFAULT_FIREWALL_POLICY = "best-effort"
FIREWALL_PORTS = ("80/tcp", "443/tcp")

DIR_MODE = 0o750
FILE_MODE = 0o640
SECRET_FILE_MODE = 0o600
PRIVATE_DIR_MODE = 0o700
CONFIG_FILE_MODE = 0o644

APACHE_SITES_AVAILABLE = "/etc/apache2/sites-available"
APACHE_SITE_NAME = "nextcloud.conf"
APACHE_DEFAULT_SITE = "000-default"
APACHE_MODULES = ("rewrite", "headers", "env", "dir", "mime", "setenvif", "ssl")

PHP_CONF_ROOT = "/etc/php"
PHP_INI_NAME = "99-nextcloud.ini"

APT_PACKAGES = (
    "apache2",
    "mariadb-server",
    "libapache2-mod-php",
    "php",
    "php-gd",
    "php-json",
    "php-mysql",
    "php-curl",
    "php-mbstring",
    "php-intl",
    "php-imagick",
    "php-xml",
    "php-zip",
    "php-bcmath",
    "php-gmp",
    "php-redis",
    "php-apcu",
    "php-opcache",
    "unzip",
    "curl",
    "certbot",
    "python3-certbot-apache",
)

MEMCACHE_LOCAL_BACKEND = "\\OC\\Memcache\\APCu"
