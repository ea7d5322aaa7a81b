# metric_multiplier/core/percentage.py
from __future__ import annotations
import logging
import math
from dataclasses import dataclass

from .coerce import UnsupportedValueError, to_float
from .diagnostics import Diagnostic, DiagnosticSink, sink_or_discard
from .model import Metric, MetricError, with_fields

CAPACITY_FIELD = "totalmhz_average"
USAGE_FIELD = "effectivecpu_average"

_LOG = logging.getLogger(__name__)


@dataclass
class CpuAccumulator:
    """
    Last seen host CPU capacity and effective usage (both MHz).

    Readings are overwritten, never summed, and outlive a single batch; once a
    non-zero capacity is known every ``effectivecpu_average`` field is
    rewritten as an integer percentage of it.
    """
    capacity: float = 0.0
    usage: float = 0.0

    def _read(self, metric: Metric, field_name: str, report: DiagnosticSink) -> float:
        value = metric.fields[field_name]
        try:
            return to_float(value)
        except UnsupportedValueError as e:
            _LOG.warning("Multiplier: [%s.%s] %s", metric.name, field_name, e)
            report(Diagnostic("unsupported_value", str(e), metric=metric.name,
                              field=field_name, value=value))
            return 0.0

    def observe(self, metric: Metric, report: DiagnosticSink | None = None) -> None:
        report = sink_or_discard(report)
        if CAPACITY_FIELD in metric.fields:
            self.capacity = self._read(metric, CAPACITY_FIELD, report)
        if USAGE_FIELD in metric.fields:
            self.usage = self._read(metric, USAGE_FIELD, report)

    def percentage(self, report: DiagnosticSink | None = None) -> int | None:
        if self.capacity == 0:
            return None
        ratio = (self.usage * 100) / self.capacity
        if not math.isfinite(ratio):
            msg = f"cannot derive percentage from usage={self.usage} capacity={self.capacity}"
            _LOG.warning("Multiplier: %s", msg)
            sink_or_discard(report)(Diagnostic("percentage", msg, field=USAGE_FIELD))
            return None
        return int(ratio)  # truncates toward zero

    def rewrite(self, metrics: list[Metric], report: DiagnosticSink | None = None) -> None:
        """Replace USAGE_FIELD in place across ``metrics`` when a percentage is known."""
        report = sink_or_discard(report)
        cpu_available = self.percentage(report)
        if cpu_available is None:
            return
        for i, metric in enumerate(metrics):
            if USAGE_FIELD not in metric.fields:
                continue
            new_fields = dict(metric.fields)
            new_fields[USAGE_FIELD] = cpu_available
            try:
                metrics[i] = with_fields(metric, new_fields)
            except MetricError as e:
                _LOG.warning("Multiplier: Cannot make a copy: %s", e)
                report(Diagnostic("construct", str(e), metric=metric.name, field=USAGE_FIELD))
