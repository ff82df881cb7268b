import sys

import pytest

from nextcloudinstaller.errors import InstallerError
from nextcloudinstaller.services.command_runner import CommandRunner


class DummyLogger:
    def __init__(self):
        self.messages = []

    def debug(self, message, *args, **_kwargs):
        self.messages.append(message % args if args else message)

    def warning(self, message, *args, **_kwargs):
        self.messages.append(message % args if args else message)


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(InstallerError, match="boom"):
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(1)"],
            check=True,
            capture_output=True,
        )


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_feeds_stdin():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
        capture_output=True,
        input_text="flush privileges;",
    )

    assert result.stdout.strip() == "FLUSH PRIVILEGES;"


def test_command_runner_redacts_registered_secrets_from_logs_and_errors():
    logger = DummyLogger()
    runner = CommandRunner(logger=logger)
    runner.register_secret("Sup3rSecret!")

    with pytest.raises(InstallerError) as error:
        runner.run(
            [
                sys.executable,
                "-c",
                "import sys; sys.stderr.write(sys.argv[1]); sys.exit(2)",
                "Sup3rSecret!",
            ],
            capture_output=True,
        )

    assert "Sup3rSecret!" not in str(error.value)
    assert "********" in str(error.value)
    assert all("Sup3rSecret!" not in message for message in logger.messages)


def test_command_runner_missing_executable_raises_installer_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(InstallerError, match="Required command not found"):
        runner.run(["definitely-not-a-real-command-nc"], capture_output=True)


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(InstallerError, match="timed out"):
        runner.run(
            [sys.executable, "-c", "import time; time.sleep(2)"],
            check=True,
            capture_output=True,
            timeout=0.1,
        )


def test_command_runner_keeps_only_stderr_tail():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(InstallerError) as error:
        runner.run(
            [
                sys.executable,
                "-c",
                "import sys; sys.stderr.write(''.join('line%d\\n' % i for i in range(50))); sys.exit(3)",
            ],
            capture_output=True,
        )

    message = str(error.value)
    assert message.startswith("Command failed (3):")
    assert "line49" in message
    assert "line29" not in message
