"""Optional JSON-lines session trace.

Disabled until :func:`configure_trace` is given a path; after that every
:func:`log_event` call appends one record to the file.
"""

from __future__ import annotations

import datetime as _dt
import uuid as _uuid
from pathlib import Path
from typing import Any

from .io import dump_json

_trace: dict[str, Any] = {"path": None, "session": None}


def new_session_id(prefix: str = "session") -> str:
    ts = _dt.datetime.now(_dt.timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    short = str(_uuid.uuid4())[:8]
    return f"{prefix}-{ts}-{short}"


def configure_trace(path: str | Path | None, session_id: str | None = None) -> str | None:
    if path is None:
        _trace.update(path=None, session=None)
        return None
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    session = session_id or new_session_id()
    _trace.update(path=p, session=session)
    return session


def log_event(event: str, **fields: Any) -> None:
    path: Path | None = _trace["path"]
    if path is None:
        return
    payload: dict[str, Any] = {
        "ts": _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="seconds"),
        "session": _trace["session"],
        "event": event,
        **fields,
    }
    with path.open("a", encoding="utf-8") as f:
        f.write(dump_json(payload) + "\n")
