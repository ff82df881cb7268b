"""JSON report of an installer run.

Unlike the state file, the manifest never contains secrets. It records what
was installed (release, digest, generated config files) and how long each
step took, for support requests and audits.
"""

import json
import os
import tempfile
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# parameters that are safe to publish in the report
REPORTED_PARAMETERS = (
    "nextcloud_version",
    "download_base_url",
    "web_dir",
    "db_name",
    "db_user",
    "phone_region",
    "firewall_policy",
)


class ManifestService:
    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self._clock: Dict[str, float] = {}
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "parameters": {},
            "release": {},
            "steps": [],
            "artifacts": {},
            "failed_step": None,
            "error": None,
        }

    @property
    def steps(self) -> List[Dict[str, Any]]:
        return self.manifest["steps"]

    def start_run(self, run_id: str, parameters: Dict[str, Any]):
        self._clock["run"] = time.monotonic()
        self.manifest.update(
            run_id=run_id,
            status="running",
            started_at=self._now(),
            parameters={key: parameters.get(key) for key in REPORTED_PARAMETERS},
        )
        self.write()

    def set_release(self, version: str, url: str, sha256: Optional[str] = None):
        self.manifest["release"] = {"version": version, "url": url, "sha256": sha256}
        self.write()

    def step_started(self, step_name: str, details: Optional[Dict[str, Any]] = None):
        self._clock[step_name] = time.monotonic()
        self.steps.append(
            {
                "name": step_name,
                "status": "running",
                "started_at": self._now(),
                "duration_seconds": None,
                "details": dict(details or {}),
                "error": None,
            }
        )
        self.write()

    def step_finished(
        self,
        step_name: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        entry = next(
            (
                step
                for step in reversed(self.steps)
                if step["name"] == step_name and step["status"] == "running"
            ),
            None,
        )
        if entry is not None:
            entry["status"] = status
            entry["error"] = error
            entry["details"].update(details or {})
            entry["duration_seconds"] = self._since(step_name)

        if status == "failed":
            self.manifest["failed_step"] = step_name
        self.write()

    def add_artifact(self, key: str, value: str):
        self.manifest["artifacts"][key] = value
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.manifest.update(
            status=status,
            finished_at=self._now(),
            duration_seconds=self._since("run"),
            error=error,
        )
        self.write()

    def write(self):
        """Best effort: a failing report never aborts the installation."""
        manifest_dir = os.path.dirname(self.manifest_file) or "."
        temp_path = None
        try:
            os.makedirs(manifest_dir, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=".run-manifest-", suffix=".json", dir=manifest_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
            temp_path = None
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
        finally:
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)

    def _since(self, key: str) -> Optional[float]:
        started = self._clock.pop(key, None)
        if started is None:
            return None
        return round(time.monotonic() - started, 3)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
