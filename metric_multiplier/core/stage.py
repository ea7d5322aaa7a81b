# metric_multiplier/core/stage.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from .diagnostics import DiagnosticSink, sink_or_discard
from .factors import build_factor_table
from .lineproto import parse_line
from .model import Metric
from .percentage import CpuAccumulator
from .rescale import rescale

_LOG = logging.getLogger(__name__)

SAMPLE_CONFIG = """
processors:
  multiplier:
    ## Multiply factors for each metric, one influx line per metric name.
    config:
      - "mem used_percent=100,available_percent=100"
      - "swap used_percent=100"
    ## Log every changed value (debug aid)
    verbose_mode: false
"""

DESCRIPTION = "Multiply metrics values on some multiply factor"


@dataclass(frozen=True)
class MultiplierOptions:
    config: tuple[str, ...] = ()
    verbose: bool = False

    @classmethod
    def from_config(cls, cfg: dict | None) -> "MultiplierOptions":
        """Read the ``processors.multiplier`` block of config.yaml."""
        block = ((cfg or {}).get("processors") or {}).get("multiplier") or {}
        lines = block.get("config") or []
        if isinstance(lines, str):
            lines = [lines]
        return cls(config=tuple(str(x) for x in lines),
                   verbose=bool(block.get("verbose_mode", False)))


class Multiplier:
    """
    Processor stage: rescales configured fields, then turns
    ``effectivecpu_average`` into a percentage of ``totalmhz_average``.

    ``on_diagnostic`` receives every recovered error; nothing raised inside a
    batch reaches the caller.
    """

    def __init__(self, options: MultiplierOptions | None = None,
                 on_diagnostic: DiagnosticSink | None = None,
                 parser: Callable[[str], Metric] = parse_line):
        self.options = options or MultiplierOptions()
        self._report = sink_or_discard(on_diagnostic)
        self._factors = build_factor_table(self.options.config, parser=parser, report=self._report)
        self.accumulator = CpuAccumulator()
        _LOG.debug("multiplier ready: %d metric name(s), verbose=%s",
                   len(self._factors), self.options.verbose)

    @property
    def factors(self) -> Mapping[str, Mapping[str, float]]:
        return MappingProxyType({k: MappingProxyType(v) for k, v in self._factors.items()})

    def description(self) -> str:
        return DESCRIPTION

    def sample_config(self) -> str:
        return SAMPLE_CONFIG

    def apply(self, metrics: list[Metric]) -> list[Metric]:
        """Transform ``metrics`` in place (elements replaced) and return the same list."""
        for i, metric in enumerate(metrics):
            # accumulators see the incoming values, not the rescaled ones
            self.accumulator.observe(metric, self._report)
            metrics[i] = rescale(metric, self._factors, self._report, self.options.verbose)
        self.accumulator.rewrite(metrics, self._report)
        return metrics
