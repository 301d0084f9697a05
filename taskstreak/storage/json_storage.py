import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

TASKS_KEY = 'tasks'
STREAK_KEY = 'streak'
ACTIVITY_LOG_KEY = 'activityLog'
DAILY_ACTIVITY_KEY = 'dailyActivity'

FILE_NAMES: Dict[str, str] = {
    TASKS_KEY: 'tasks.json',
    STREAK_KEY: 'streak.json',
    ACTIVITY_LOG_KEY: 'activity_log.json',
    DAILY_ACTIVITY_KEY: 'daily_activity.json',
}


class JsonStateStorage:
    """JSON-file key-value store, one file per persisted value"""

    def __init__(self, data_dir: Path = None):
        """Initialize storage with default or custom directory"""
        self.data_dir = Path(data_dir) if data_dir else (Path.home() / ".taskstreak")

    def path_for(self, key: str) -> Path:
        return self.data_dir / FILE_NAMES.get(key, f"{key}.json")

    def read(self, key: str) -> Optional[Any]:
        """Read a raw value; missing or corrupt files read as None"""
        path = self.path_for(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("ignoring unreadable %s: %s", path, e)
            return None

    def write(self, key: str, value: Any):
        """Write a raw value to storage"""
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value, indent=2), encoding="utf-8")
