from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional


class OpsLogger:
    """Append-only JSONL logger for operational events.

    - One JSON object per line (UTF-8, newline-delimited)
    - Thread-safe (coarse lock)
    - Best-effort: never raises to caller
    """

    def __init__(self, file_path: Path, also_stdout: bool = False) -> None:
        self.file_path = Path(file_path)
        self.also_stdout = bool(also_stdout)
        self._lock = threading.Lock()
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

    def emit(self, record: Dict[str, Any]) -> None:
        try:
            line = json.dumps(record, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = json.dumps({"leads_ops": 1, "_serialization_error": True, "record_str": str(record)})
        try:
            with self._lock:
                with self.file_path.open("a", encoding="utf-8") as f:
                    f.write(line)
                    f.write("\n")
        except OSError:
            pass
        if self.also_stdout:
            print(line)

    def event(self, name: str, *, url: Optional[str] = None, error: Optional[BaseException] = None,
              **fields: Any) -> None:
        """Emit a named event with the standard envelope (time, url, error class)."""
        record: Dict[str, Any] = {"leads_ops": 1, "event": name, "ts": round(time.time(), 3)}
        if url is not None:
            record["url"] = url
        if error is not None:
            record["error_class"] = type(error).__name__
            record["error"] = str(error)[:500]
            kind = getattr(error, "kind", None)
            if kind is not None:
                record["error_kind"] = getattr(kind, "value", str(kind))
        record.update(fields)
        self.emit(record)
