from __future__ import annotations

import json
import os
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Deque, Dict, Optional


OPS_ENV_FLAG = "PXE_OPS_JSON"

# Recent records kept in memory for inspection
RECENT_RECORDS = 100


def ops_enabled(flag: bool = False) -> bool:
    """Ops records are on when configured or when PXE_OPS_JSON=1."""
    return bool(flag) or os.environ.get(OPS_ENV_FLAG, "0") == "1"


class OpsLogger:
    """Append-only JSONL logger for extraction sessions and scheduler events.

    - One JSON object per line (UTF-8, newline-delimited)
    - Each record gets an ISO 8601 UTC "ts" field unless it already has one
    - Best-effort: never raises to caller
    - Only the most recent `keep_records` records stay in `records`
    """

    def __init__(
        self,
        file_path: Optional[Path] = None,
        also_stdout: bool = False,
        keep_records: int = RECENT_RECORDS,
    ) -> None:
        self.file_path = Path(file_path) if file_path else None
        self.also_stdout = bool(also_stdout)
        self.records: Deque[Dict[str, Any]] = deque(maxlen=keep_records)
        if self.file_path is not None:
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                pass

    def emit(self, record: Dict[str, Any]) -> None:
        record = dict(record)
        record.setdefault("ts", datetime.now(timezone.utc).isoformat())
        self.records.append(record)
        try:
            line = json.dumps(record, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = json.dumps({"pxe_ops": 1, "_serialization_error": True, "record_str": str(record)})
        if self.file_path is not None:
            try:
                with self.file_path.open("a", encoding="utf-8") as f:
                    f.write(line)
                    f.write("\n")
            except OSError:
                # Never propagate logging errors
                pass
        if self.also_stdout:
            print(line)
