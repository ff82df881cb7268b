"""Checkpoint file behind ``--resume`` and ``--only-step``.

The file records the install parameters, the discovered context (backup
directory, server address, PHP version), the credentials and the outcome of
every step. Secrets stay in it only until the run succeeds, and it is only ever
written with mode 0600.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from nextcloudinstaller.constants import SECRET_FILE_MODE
from nextcloudinstaller.errors import InstallerError

State = Dict[str, Any]


class StateService:
    """Loads, checkpoints and validates the run state file."""

    SCHEMA_VERSION = 1
    # a resumed run must target the same release, web root and database
    RESUME_KEYS = (
        "nextcloud_version",
        "download_base_url",
        "web_dir",
        "db_name",
        "db_user",
    )

    def __init__(self, state_file: str, logger):
        self.state_file = state_file
        self.logger = logger

    def exists(self) -> bool:
        return os.path.isfile(self.state_file)

    def load(self) -> Optional[State]:
        if not self.exists():
            return None

        try:
            with open(self.state_file, "r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            raise InstallerError(f"Could not read state file '{self.state_file}': {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("steps"), dict):
            raise InstallerError(f"State file '{self.state_file}' has invalid format.")
        if data.get("schema_version") != self.SCHEMA_VERSION:
            raise InstallerError(
                f"State file '{self.state_file}' was written by an incompatible installer version."
            )
        return data

    def save(self, state: State):
        state_dir = os.path.dirname(self.state_file) or "."
        state["schema_version"] = self.SCHEMA_VERSION
        state["updated_at"] = self._now()

        temp_path = None
        try:
            os.makedirs(state_dir, mode=0o700, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=".run-state-", suffix=".json", dir=state_dir)
            os.fchmod(fd, SECRET_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(state, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.state_file)
            temp_path = None
        except OSError as exc:
            raise InstallerError(f"Could not write state file '{self.state_file}': {exc}") from exc
        finally:
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)

    def initialize(
        self,
        parameters: Dict[str, Any],
        context: Dict[str, Any],
        resume: bool,
    ) -> Tuple[State, bool]:
        """Return ``(state, resumed)``; a fresh state replaces any existing file."""
        if resume:
            existing = self.load()
            if existing:
                self._check_same_inputs(existing, parameters)
                return existing, True

        state: State = {
            "created_at": self._now(),
            "status": "running",
            "parameters": parameters,
            "context": context,
            "credentials": {},
            "completed_steps": [],
            "current_step": None,
            "steps": {},
            "last_error": None,
        }
        self.save(state)
        return state, False

    def mark_step_started(self, state: State, step_name: str):
        record = state["steps"].setdefault(step_name, {"attempts": 0})
        record.update(
            status="running",
            attempts=record.get("attempts", 0) + 1,
            started_at=self._now(),
            finished_at=None,
            error=None,
        )
        state["current_step"] = step_name
        self.save(state)

    def mark_step_completed(self, state: State, step_name: str):
        self._finish_step(state, step_name, "success")
        if step_name not in state["completed_steps"]:
            state["completed_steps"].append(step_name)
        state["current_step"] = None
        self.save(state)

    def mark_step_failed(self, state: State, step_name: str, error: str):
        self._finish_step(state, step_name, "failed", error)
        state["status"] = "failed"
        state["last_error"] = error
        self.save(state)

    def mark_status(self, state: State, status: str, error: Optional[str] = None):
        state["status"] = status
        if error:
            state["last_error"] = error
        self.save(state)

    def is_step_completed(self, state: State, step_name: str) -> bool:
        return step_name in state.get("completed_steps", [])

    def remaining_steps(self, state: State, step_names: Iterable[str]) -> List[str]:
        return [name for name in step_names if not self.is_step_completed(state, name)]

    def set_context(self, state: State, context: Dict[str, Any]):
        state["context"] = context
        self.save(state)

    def set_credentials(self, state: State, credentials: Dict[str, Any]):
        state["credentials"] = credentials
        self.save(state)

    def clear_credentials(self, state: State):
        state["credentials"] = {}
        self.save(state)

    def _finish_step(self, state: State, step_name: str, status: str, error: Optional[str] = None):
        record = state["steps"].get(step_name)
        if record is None:
            return
        record.update(status=status, finished_at=self._now(), error=error)

    def _check_same_inputs(self, state: State, parameters: Dict[str, Any]):
        recorded = state.get("parameters", {})
        mismatches = [key for key in self.RESUME_KEYS if recorded.get(key) != parameters.get(key)]
        if mismatches:
            raise InstallerError(
                "Cannot resume run with different inputs. "
                f"Mismatched fields: {', '.join(mismatches)}."
            )

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
