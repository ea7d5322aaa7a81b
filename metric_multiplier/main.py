# metric_multiplier/main.py
from __future__ import annotations
from pathlib import Path
import logging
import sys
import yaml

from .loaders import csv_loader, lineproto_loader
from .utils.detect import discover_inputs
from .core.pipeline import run_pipeline

_LOG = logging.getLogger("metric_multiplier")

def load_config(cfg_path: Path) -> dict:
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

def _setup_logging(cfg: dict) -> bool:
    log_cfg = cfg.get("logging", {})
    verbose = bool(log_cfg.get("verbose", True))
    level = str(log_cfg.get("level", "INFO" if verbose else "WARNING")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format="[%(levelname)s] %(name)s: %(message)s")
    return verbose

def main(argv: list[str] | None = None):
    argv = sys.argv[1:] if argv is None else argv
    # ---------- config ----------
    here = Path(__file__).resolve().parent
    cfg_path = Path(argv[0]) if argv else here / "config.yaml"
    cfg = load_config(cfg_path)
    verbose = _setup_logging(cfg)

    in_path = Path(cfg["input"]["path"]).resolve()
    recurse = bool(cfg["input"].get("recurse", True))
    out_root = Path(cfg["output"]["root"]).resolve()

    if verbose:
        _LOG.info("[cfg] input=%s (recurse=%s)", in_path, recurse)
        _LOG.info("[cfg] output=%s", out_root)

    # ---------- discover ----------
    detected = discover_inputs(in_path, recurse=recurse)
    if not detected:
        _LOG.info("No line-protocol/CSV inputs found under: %s", in_path)
        return 0
    if verbose:
        kinds: dict[str, int] = {}
        for d in detected:
            kinds[d.kind] = kinds.get(d.kind, 0) + 1
        _LOG.info("[detector] found %d inputs -> %s", sum(kinds.values()), kinds)

    # ---------- loader registry ----------
    registry = {
        "lineproto": lineproto_loader.load,
        "csv":       csv_loader.load,
    }

    metrics = []
    for item in detected:
        loader = registry.get(item.kind)
        if loader is None:
            _LOG.debug("[skip] no loader for %s: %s", item.kind, item.path.name)
            continue
        try:
            metrics.extend(loader(item.path, cfg))
        except (OSError, ValueError) as e:
            _LOG.warning("loader failed for %s: %s", item.path.name, e)

    if not metrics:
        _LOG.info("No metrics loaded; exiting without processing pipeline.")
        return 0

    if verbose:
        _LOG.info("[pipeline] processing %d metric(s) from %d input(s)", len(metrics), len(detected))
    run_pipeline(metrics, cfg, out_root)
    return 0

if __name__ == "__main__":
    sys.exit(main())
