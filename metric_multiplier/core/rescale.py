# metric_multiplier/core/rescale.py
from __future__ import annotations
import logging
from typing import Mapping

from .coerce import UnsupportedValueError, multiply
from .diagnostics import Diagnostic, DiagnosticSink, sink_or_discard
from .model import Metric, MetricError, with_fields

_LOG = logging.getLogger(__name__)


def _changed(old, new) -> bool:
    if type(old) is not type(new):
        return True
    try:
        return bool(old != new)
    except (TypeError, ValueError):
        return True


def rescale(metric: Metric, factors: Mapping[str, Mapping[str, float]],
            report: DiagnosticSink | None = None, verbose: bool = False) -> Metric:
    """
    Multiply the fields of ``metric`` listed under its name in ``factors``.

    Metrics with no entry come back as the very same object. When the new
    metric cannot be built the original is returned unchanged.
    """
    per_field = factors.get(metric.name)
    if per_field is None:
        return metric
    report = sink_or_discard(report)

    new_fields = {}
    for field_name, value in metric.fields.items():
        new_value = value
        factor = per_field.get(field_name)
        if factor is not None:
            try:
                new_value = multiply(value, factor)
            except UnsupportedValueError as e:
                _LOG.warning("Multiplier: [%s.%s] %s", metric.name, field_name, e)
                report(Diagnostic("unsupported_value", str(e), metric=metric.name,
                                  field=field_name, value=value, factor=factor))
            else:
                if verbose and _changed(value, new_value):
                    _LOG.info("Multiplier: [%s.%s] %s * %s => %s",
                              metric.name, field_name, value, factor, new_value)
        new_fields[field_name] = new_value

    try:
        return with_fields(metric, new_fields)
    except MetricError as e:
        _LOG.warning("Multiplier: Cannot make a copy: %s", e)
        report(Diagnostic("construct", str(e), metric=metric.name))
        return metric
