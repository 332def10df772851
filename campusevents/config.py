"""
Settings.

Working hours and the notification endpoint come from, in increasing priority:
- built-in defaults (09:00-18:00, no endpoint)
- data/settings.json
- environment variables CAMPUSEVENTS_WORK_START / CAMPUSEVENTS_WORK_END /
  CAMPUSEVENTS_NOTIFY_URL
- explicit CLI flags (applied by the caller via with_overrides())
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

from rich.logging import RichHandler

from campusevents.model import WorkingHours
from campusevents.scheduler import validate_working_hours

logger = logging.getLogger(__name__)

ENV_WORK_START = "CAMPUSEVENTS_WORK_START"
ENV_WORK_END = "CAMPUSEVENTS_WORK_END"
ENV_NOTIFY_URL = "CAMPUSEVENTS_NOTIFY_URL"


@dataclass(frozen=True)
class Settings:
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    notify_url: Optional[str] = None

    def with_overrides(
        self,
        work_start: Optional[str] = None,
        work_end: Optional[str] = None,
        notify_url: Optional[str] = None,
    ) -> "Settings":
        hours = WorkingHours(
            start=work_start or self.working_hours.start,
            end=work_end or self.working_hours.end,
        )
        return replace(
            self,
            working_hours=validate_working_hours(hours),
            notify_url=notify_url or self.notify_url,
        )


def _default_settings_path() -> Path:
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "settings.json"


def _read_settings_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Ignoring unreadable settings file %s", path)
        return {}
    return data if isinstance(data, dict) else {}


def load_settings(path: str | Path | None = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the settings file and the environment.

    Raises InvalidWindow if the resulting working hours are malformed.
    """
    env = os.environ if environ is None else environ
    data = _read_settings_file(Path(path) if path is not None else _default_settings_path())

    wh = data.get("working_hours")
    wh = wh if isinstance(wh, dict) else {}
    defaults = WorkingHours()
    start = str(wh.get("start") or defaults.start).strip()
    end = str(wh.get("end") or defaults.end).strip()
    notify_url = data.get("notify_url") or None

    start = env.get(ENV_WORK_START, "").strip() or start
    end = env.get(ENV_WORK_END, "").strip() or end
    notify_url = env.get(ENV_NOTIFY_URL, "").strip() or notify_url

    hours = validate_working_hours(WorkingHours(start=start, end=end))
    return Settings(working_hours=hours, notify_url=notify_url)


def setup_logging(verbose: bool = False) -> None:
    """
    Route log records through rich. WARNING by default, DEBUG with -v.
    """
    root = logging.getLogger("campusevents")
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
