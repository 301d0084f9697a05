import json
from typing import Any, Dict, Optional


class MemoryStateStorage:
    """In-process key-value store. Values are kept JSON-encoded so reads
    return fresh copies, the same as reading back from disk."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.write(key, value)

    def read(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def write(self, key: str, value: Any):
        self._data[key] = json.dumps(value)

    def write_raw(self, key: str, raw: str):
        """Store an undecoded string, e.g. to simulate a damaged value"""
        self._data[key] = raw

    def keys(self):
        return list(self._data)

    def __repr__(self):
        return f"<MemoryStateStorage keys={sorted(self._data)}>"
