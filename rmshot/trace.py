"""Trace file for following a capture after the fact.

One timestamped line per event, appended to the file named by
RMSHOT_TRACE_LOG (a file in the system temp directory when unset, no
tracing when set to an empty string). Tracing is independent of the
logging configuration of the host and never raises.

Usage:
    from rmshot.trace import trace

    trace("REMARKABLE", "capture started")
    trace("REMARKABLE", "capture failed", include_traceback=True)
"""

import os
import tempfile
import traceback
from datetime import datetime
from typing import Optional


TRACE_ENV_VAR = "RMSHOT_TRACE_LOG"
DEFAULT_TRACE_FILENAME = "rmshot_trace.log"


def trace_path() -> Optional[str]:
    """Trace file to append to, or None if tracing is disabled."""
    value = os.environ.get(TRACE_ENV_VAR)
    if value is None:
        return os.path.join(tempfile.gettempdir(), DEFAULT_TRACE_FILENAME)
    return value or None


def trace(component: str, msg: str, *, include_traceback: bool = False) -> None:
    """Append a line to the trace file.

    Args:
        component: Prefix identifying the writer, e.g. "REMARKABLE@agent".
        msg: Message to write.
        include_traceback: Also write the traceback of the exception
            currently being handled.
    """
    path = trace_path()
    if not path:
        return
    ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    lines = [f"[{ts}] [{component}] {msg}\n"]
    if include_traceback:
        tb = traceback.format_exc()
        if tb.strip() != "NoneType: None":
            lines.append(f"[{ts}] [{component}] Traceback:\n{tb}\n")
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        pass  # An unwritable trace file must not fail the capture
