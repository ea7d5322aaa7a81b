# metric_multiplier/loaders/lineproto_loader.py
from __future__ import annotations
from pathlib import Path
import logging

from ..core.lineproto import LineProtocolError, parse_line
from ..core.model import Metric

_LOG = logging.getLogger(__name__)


def _metrics_from_text(text: str, source: str) -> list[Metric]:
    metrics: list[Metric] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            metrics.append(parse_line(stripped))
        except LineProtocolError as e:
            _LOG.warning("%s:%d: skipping malformed line: %s", source, lineno, e)
    return metrics


def load(path: Path, cfg: dict | None = None) -> list[Metric]:
    """
    Accepts: a text file with one influx line per metric ('#' comments allowed).
    Returns: metrics in file order.
    """
    metrics = _metrics_from_text(path.read_text(encoding="utf-8"), path.name)
    _LOG.debug("loaded %d metric(s) from %s", len(metrics), path.name)
    return metrics
