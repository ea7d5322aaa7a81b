# metric_multiplier/core/factors.py
from __future__ import annotations
import logging
from typing import Callable, Iterable

from .coerce import UnsupportedValueError, to_float
from .diagnostics import Diagnostic, DiagnosticSink, sink_or_discard
from .lineproto import LineProtocolError, parse_line
from .model import Metric

FactorTable = dict[str, dict[str, float]]

_LOG = logging.getLogger(__name__)


def build_factor_table(lines: Iterable[str],
                       parser: Callable[[str], Metric] = parse_line,
                       report: DiagnosticSink | None = None) -> FactorTable:
    """
    Turn config lines such as ``"mem used_percent=100,available_percent=100"``
    into ``{"mem": {"used_percent": 100.0, "available_percent": 100.0}}``.

    Lines that fail to parse are logged and skipped; a later line overrides an
    earlier factor for the same (metric, field).
    """
    report = sink_or_discard(report)
    table: FactorTable = {}
    for line in lines:
        try:
            decoded = parser(line)
        except LineProtocolError as e:
            _LOG.error("cannot parse multiplier config line %r: %s", line, e)
            report(Diagnostic("decode", str(e), metric=str(line)))
            continue

        keeper = table.setdefault(decoded.name, {})
        for field_name, raw in decoded.fields.items():
            try:
                keeper[field_name] = to_float(raw)
            except UnsupportedValueError as e:
                _LOG.warning("[%s.%s] factor ignored: %s", decoded.name, field_name, e)
                report(Diagnostic("unsupported_value", str(e),
                                  metric=decoded.name, field=field_name, value=raw))
        _LOG.debug("factors for %s: %s", decoded.name, keeper)
    return table
