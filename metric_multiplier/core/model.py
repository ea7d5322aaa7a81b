# metric_multiplier/core/model.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Literal, Mapping
import numpy as np
import pandas as pd

MetricKind = Literal["untyped", "counter", "gauge", "summary", "histogram"]
METRIC_KINDS: tuple[str, ...] = ("untyped", "counter", "gauge", "summary", "histogram")

# scalar types a field may hold; anything else cannot be built into a Metric
FIELD_TYPES = (str, bool, int, float, np.integer, np.floating)


class MetricError(ValueError):
    """A metric could not be constructed from the given parts."""


@dataclass(frozen=True)
class Metric:
    name: str                 # measurement, e.g. "mem" or "vsphere_host_cpu"
    tags: dict[str, str]      # unordered tag set
    fields: dict[str, Any]    # field name -> scalar (numpy scalars keep width/signedness)
    time: pd.Timestamp
    kind: MetricKind = "untyped"


def new_metric(name: str, tags: Mapping[str, str], fields: Mapping[str, Any],
               time: pd.Timestamp, kind: MetricKind = "untyped") -> Metric:
    """
    Validating constructor. Tags and fields are copied so the caller's
    mappings can be reused. Raises MetricError on invalid input.
    """
    if not isinstance(name, str) or not name:
        raise MetricError(f"invalid metric name: {name!r}")
    if kind not in METRIC_KINDS:
        raise MetricError(f"{name}: unknown metric kind {kind!r}")
    for k, v in tags.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise MetricError(f"{name}: tag {k!r}={v!r} must be str=str")
    if not fields:
        raise MetricError(f"{name}: metric has no fields")
    for k, v in fields.items():
        if not isinstance(k, str) or not k:
            raise MetricError(f"{name}: invalid field name {k!r}")
        if not isinstance(v, FIELD_TYPES):
            raise MetricError(f"{name}: field {k!r} has unsupported type {type(v).__name__}")
    return Metric(name=name, tags=dict(tags), fields=dict(fields),
                  time=pd.Timestamp(time), kind=kind)


def with_fields(metric: Metric, fields: Mapping[str, Any]) -> Metric:
    """Copy of ``metric`` carrying ``fields`` instead (validated)."""
    return new_metric(metric.name, metric.tags, fields, metric.time, metric.kind)
