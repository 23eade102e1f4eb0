"""
photontap — console rendering for decoded traffic

Formats Envelopes, disconnects and diagnostics as rich renderables for
the CLI. Kept separate from main.py so the formatting is testable.
"""

from __future__ import annotations

import json
import time

from rich.table import Table
from rich.text import Text

from photontap.data.diagnostics import Diagnostics
from photontap.protocol.envelope import DisconnectSignal
from photontap.protocol.values import (
    EventRecord,
    OperationRequest,
    OperationResponse,
    to_python,
)

_KIND_STYLES: dict[type, tuple[str, str]] = {
    EventRecord: ("EVENT", "cyan"),
    OperationRequest: ("REQUEST", "green"),
    OperationResponse: ("RESPONSE", "yellow"),
}

MAX_PARAM_CHARS = 160


def _fmt_time(ts: float) -> str:
    return time.strftime("%H:%M:%S", time.localtime(ts))


def _fmt_params(params) -> str:
    text = json.dumps(_jsonable(params), default=_json_default)
    if len(text) > MAX_PARAM_CHARS:
        text = text[:MAX_PARAM_CHARS - 3] + "..."
    return text


def _jsonable(obj):
    # json.dumps only calls default= for values, never for dict keys.
    if isinstance(obj, dict):
        return {_json_key(k): _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    return obj


def _json_key(key) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bytes):
        return key.hex()
    if isinstance(key, tuple):
        return json.dumps(_jsonable(key), default=_json_default)
    return str(key)


def _json_default(obj):
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, tuple):
        return list(obj)
    return repr(obj)


def format_delivery(item, ts: float | None = None) -> Text:
    """One log line for an Envelope or DisconnectSignal."""
    text = Text(f"[{_fmt_time(ts or time.time())}] ", style="dim")

    if isinstance(item, DisconnectSignal):
        text.append("DISCONNECT", style="bold red")
        text.append(f" peer={item.peer_id} ch={item.channel_id}")
        return text

    label, color = _KIND_STYLES[type(item)]
    text.append(f"{label:<8}", style=f"bold {color}")
    text.append(f" code={item.code:<4}")
    if isinstance(item, OperationResponse):
        text.append(f" rc={item.return_code}", style="red" if item.return_code else "")
        debug = to_python(item.debug_message)
        if debug:
            text.append(f" msg={debug!r}", style="italic")
    params = {k: to_python(v) for k, v in item.parameters.items()}
    text.append(f" {_fmt_params(params)}")
    return text


def diagnostics_table(diagnostics: Diagnostics, packets: int = 0, emitted: int = 0) -> Table:
    """Summary table of counted diagnostics."""
    table = Table(title="Decode summary", show_lines=False)
    table.add_column("Kind", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("packets", str(packets), style="dim")
    table.add_row("emitted", str(emitted), style="dim")
    for kind, count in sorted(diagnostics.snapshot().items(), key=lambda x: -x[1]):
        table.add_row(kind, str(count), style="red")
    return table
