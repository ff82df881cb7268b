"""Jinja2 rendering of the Apache and PHP configuration files."""

from dataclasses import asdict
from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from nextcloudinstaller.errors import InstallerError

VHOST_TEMPLATE = "nextcloud.conf.j2"
PHP_INI_TEMPLATE = "99-nextcloud.ini.j2"


class TemplateRenderer:
    """Renders packaged templates from validated config dataclasses."""

    def __init__(self, environment: Optional[Environment] = None):
        self.environment = environment or Environment(
            loader=PackageLoader("nextcloudinstaller", "templates"),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, template_name: str, config) -> str:
        values = asdict(config)
        for key, value in values.items():
            if isinstance(value, str) and any(char in value for char in "\r\n"):
                raise InstallerError(f"Refusing to render {key!r} containing a line break.")

        try:
            return self.environment.get_template(template_name).render(**values)
        except TemplateError as exc:
            raise InstallerError(f"Could not render {template_name}: {exc}") from exc

    def render_vhost(self, config) -> str:
        return self.render(VHOST_TEMPLATE, config)

    def render_php_ini(self, config) -> str:
        return self.render(PHP_INI_TEMPLATE, config)
