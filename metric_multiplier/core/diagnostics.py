# metric_multiplier/core/diagnostics.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

DiagnosticKind = Literal["decode", "unsupported_value", "construct", "percentage"]


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    metric: str = ""          # metric name, or the raw config line for decode errors
    field: str = ""
    value: Any = None
    factor: Optional[float] = None

    def as_row(self) -> dict:
        return {
            "kind": self.kind,
            "metric": self.metric,
            "field": self.field,
            "factor": "" if self.factor is None else self.factor,
            "value_type": "" if self.value is None else type(self.value).__name__,
            "value": "" if self.value is None else str(self.value),
            "message": self.message,
        }


DiagnosticSink = Callable[[Diagnostic], None]


def _discard(_: Diagnostic) -> None:
    return None


def sink_or_discard(report: DiagnosticSink | None) -> DiagnosticSink:
    return report if report is not None else _discard
