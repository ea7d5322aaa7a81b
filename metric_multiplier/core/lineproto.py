# metric_multiplier/core/lineproto.py
"""
Influx line protocol, the format of both the multiplier config lines and the
metric input/output files.

    measurement[,tag=value...] field=value[,field=value...] [timestamp_ns]

String fields escape quotes and backslashes; CR and LF are written as
backslash escapes so one metric always stays on one line.
"""
from __future__ import annotations
import math
import re
from typing import Any
import numpy as np
import pandas as pd

from .model import Metric, MetricError, new_metric

_TRUE = ("t", "T", "true", "True", "TRUE")
_FALSE = ("f", "F", "false", "False", "FALSE")
_INT_RE = re.compile(r"^[+-]?\d+i$")
_UINT_RE = re.compile(r"^\d+u$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_KEY_UNESCAPE = re.compile(r"\\([,= \\])")
_STR_UNESCAPE = re.compile(r'\\(["\\nr])')
_STR_ESCAPES = {"n": "\n", "r": "\r"}


class LineProtocolError(ValueError):
    pass


def _split(text: str, sep: str, *, maxsplit: int = -1, quoted: bool = False) -> list[str]:
    """Split on ``sep`` ignoring backslash-escaped chars (and quoted strings when asked)."""
    parts: list[str] = []
    buf: list[str] = []
    in_quotes = False
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and i + 1 < n:
            buf.append(text[i:i + 2])
            i += 2
            continue
        if quoted and ch == '"':
            in_quotes = not in_quotes
        elif ch == sep and not in_quotes and (maxsplit < 0 or len(parts) < maxsplit):
            parts.append("".join(buf))
            buf = []
            i += 1
            continue
        buf.append(ch)
        i += 1
    if in_quotes:
        raise LineProtocolError(f"unterminated string in {text!r}")
    parts.append("".join(buf))
    return parts


def _unescape_key(s: str) -> str:
    return _KEY_UNESCAPE.sub(r"\1", s)


def _escape_key(s: str) -> str:
    return s.replace("\\", "\\\\").replace(",", r"\,").replace("=", r"\=").replace(" ", r"\ ")


def _pair(item: str, what: str) -> tuple[str, str]:
    kv = _split(item, "=", maxsplit=1, quoted=(what == "field"))
    if len(kv) != 2 or not kv[0] or not kv[1]:
        raise LineProtocolError(f"invalid {what} {item!r}")
    return _unescape_key(kv[0]), kv[1]


def _field_value(raw: str) -> Any:
    if raw.startswith('"'):
        if len(raw) < 2 or not raw.endswith('"'):
            raise LineProtocolError(f"invalid string field value {raw!r}")
        return _STR_UNESCAPE.sub(lambda m: _STR_ESCAPES.get(m.group(1), m.group(1)), raw[1:-1])
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    try:
        if _INT_RE.match(raw):
            return np.int64(int(raw[:-1]))
        if _UINT_RE.match(raw):
            return np.uint64(int(raw[:-1]))
        if _FLOAT_RE.match(raw):
            value = float(raw)
            if math.isfinite(value):
                return np.float64(value)
        raise ValueError("not a line-protocol number")
    except (OverflowError, ValueError) as e:
        raise LineProtocolError(f"invalid field value {raw!r}: {e}") from e


def parse_line(line: str) -> Metric:
    """Decode one line into a Metric; raises LineProtocolError."""
    text = (line or "").strip()
    if not text:
        raise LineProtocolError("empty line")
    sections = _split(text, " ", quoted=True)
    if len(sections) not in (2, 3) or not all(sections):
        raise LineProtocolError(f"expected 'measurement fields [timestamp]', got {text!r}")

    head = _split(sections[0], ",")
    name = _unescape_key(head[0])
    if not name:
        raise LineProtocolError(f"missing measurement in {text!r}")
    tags = dict(_pair(t, "tag") for t in head[1:])
    tags = {k: _unescape_key(v) for k, v in tags.items()}

    fields = {}
    for item in _split(sections[1], ",", quoted=True):
        key, raw = _pair(item, "field")
        fields[key] = _field_value(raw)

    if len(sections) == 3:
        try:
            ts = pd.Timestamp(int(sections[2]), unit="ns").tz_localize("UTC")
        except (OverflowError, ValueError) as e:
            raise LineProtocolError(f"invalid timestamp {sections[2]!r}") from e
    else:
        ts = pd.Timestamp.now(tz="UTC")

    try:
        return new_metric(name, tags, fields, ts)
    except MetricError as e:
        raise LineProtocolError(str(e)) from e


def _format_value(value: Any) -> str:
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, str):
        return '"' + (value.replace("\\", "\\\\").replace('"', r"\"")
                      .replace("\n", r"\n").replace("\r", r"\r")) + '"'
    if isinstance(value, np.unsignedinteger):
        return f"{int(value)}u"
    if isinstance(value, (int, np.integer)):
        return f"{int(value)}i"
    return repr(float(value))


def format_line(metric: Metric) -> str:
    head = metric.name.replace(",", r"\,").replace(" ", r"\ ")
    for k, v in sorted(metric.tags.items()):
        head += f",{_escape_key(k)}={_escape_key(v)}"
    fields = ",".join(f"{_escape_key(k)}={_format_value(v)}" for k, v in metric.fields.items())
    line = f"{head} {fields}"
    if not pd.isna(metric.time):
        line += f" {pd.Timestamp(metric.time).value}"
    return line
