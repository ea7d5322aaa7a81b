# metric_multiplier/core/pipeline.py
from __future__ import annotations
import logging
from pathlib import Path

from .diagnostics import Diagnostic
from .lineproto import format_line
from .model import Metric
from .reports import write_report
from .stage import Multiplier, MultiplierOptions

_LOG = logging.getLogger(__name__)


def iter_batches(metrics: list[Metric], batch_size: int):
    if batch_size <= 0:
        batch_size = max(len(metrics), 1)
    for start in range(0, len(metrics), batch_size):
        yield metrics[start:start + batch_size]


def run_pipeline(metrics: list[Metric], cfg: dict, out_root: Path,
                 stage: Multiplier | None = None) -> list[Metric]:
    """
    Feed ``metrics`` through the multiplier stage batch by batch, write the
    result as line protocol to ``out_root/metrics.lp`` and any diagnostics
    to ``out_root/diagnostics.{csv,mat}`` (only collected when the stage is
    built here from ``cfg``).
    """
    diagnostics: list[Diagnostic] = []
    if stage is None:
        stage = Multiplier(MultiplierOptions.from_config(cfg), on_diagnostic=diagnostics.append)

    batch_size = int(cfg.get("output", {}).get("batch_size", 1000))
    out: list[Metric] = []
    for n, batch in enumerate(iter_batches(metrics, batch_size), start=1):
        out.extend(stage.apply(batch))
        _LOG.debug("batch %d: %d metric(s), cpu=%s", n, len(batch), stage.accumulator)

    out_root.mkdir(parents=True, exist_ok=True)
    out_path = out_root / "metrics.lp"
    with out_path.open("w", encoding="utf-8") as f:
        for m in out:
            f.write(format_line(m) + "\n")
    _LOG.info("wrote %d metric(s) -> %s", len(out), out_path)

    rep = cfg.get("reports", {})
    fmt = str(rep.get("format", "csv")).lower()
    mat_var = str(rep.get("mat_variable", "diagnostics"))
    write_report(diagnostics, out_root / "diagnostics", "multiplier diagnostics",
                 fmt=fmt, mat_variable=mat_var)
    if diagnostics:
        _LOG.info("%d diagnostic(s) recorded", len(diagnostics))
    return out
