"""MariaDB hardening and Nextcloud schema/user provisioning."""

import os
import tempfile
from typing import Callable

from nextcloudinstaller.errors import InstallerError


def sql_literal(value: str) -> str:
    """Quote ``value`` as a single-quoted SQL string literal."""
    if "\x00" in value:
        raise InstallerError("SQL values must not contain NUL bytes.")
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class MariaDBService:
    """Runs the SQL batches that secure MariaDB and provision Nextcloud's database.

    ``db_name`` and ``db_user`` must already be validated identifiers; they
    are embedded unquoted in ``CREATE DATABASE`` and ``GRANT``.
    """

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def build_hardening_sql(root_password: str) -> str:
        # keep unix_socket so `sudo mysql` keeps working on later runs
        return "\n".join(
            [
                "ALTER USER 'root'@'localhost' IDENTIFIED VIA mysql_native_password "
                f"USING PASSWORD({sql_literal(root_password)}) OR unix_socket;",
                "DELETE FROM mysql.global_priv WHERE User='';",
                "DELETE FROM mysql.global_priv WHERE User='root' "
                "AND Host NOT IN ('localhost', '127.0.0.1', '::1');",
                "DROP DATABASE IF EXISTS test;",
                "DELETE FROM mysql.db WHERE Db='test' OR Db='test\\_%';",
                "FLUSH PRIVILEGES;",
                "",
            ]
        )

    @staticmethod
    def build_provisioning_sql(db_name: str, db_user: str, db_password: str) -> str:
        account = f"{sql_literal(db_user)}@'localhost'"
        password = sql_literal(db_password)
        return "\n".join(
            [
                f"CREATE DATABASE IF NOT EXISTS `{db_name}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci;",
                f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {password};",
                f"ALTER USER {account} IDENTIFIED BY {password};",
                f"GRANT ALL PRIVILEGES ON `{db_name}`.* TO {account};",
                "FLUSH PRIVILEGES;",
                "",
            ]
        )

    def secure(self, root_password: str, run_cmd: Callable):
        self.console.print("[blue]Securing MariaDB installation...[/blue]")
        run_cmd(
            ["sudo", "mysql", "-u", "root"],
            input_text=self.build_hardening_sql(root_password),
            capture_output=True,
        )
        self.console.print("[green][SUCCESS] MariaDB secured[/green]")

    def provision(self, db_name: str, db_user: str, db_password: str, root_password: str, run_cmd: Callable):
        self.console.print("[blue]Creating Nextcloud database and user...[/blue]")
        sql = self.build_provisioning_sql(db_name, db_user, db_password)

        fd, options_path = tempfile.mkstemp(prefix="nextcloud-installer-", suffix=".cnf")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write("[client]\nuser=root\n")
                file_obj.write(f'password="{root_password}"\n')
            run_cmd(
                ["mysql", f"--defaults-extra-file={options_path}"],
                input_text=sql,
                capture_output=True,
            )
        finally:
            os.remove(options_path)

        self.logger.info("Database %s and user %s are ready", db_name, db_user)
        self.console.print("[green][SUCCESS] Database configured[/green]")
