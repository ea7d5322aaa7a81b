# metric_multiplier/utils/detect.py
from __future__ import annotations
from pathlib import Path
from dataclasses import dataclass
from typing import Literal

DetectedKind = Literal["lineproto", "csv", "unknown"]

LINEPROTO_SUFFIXES = (".lp", ".influx", ".txt")

@dataclass(frozen=True)
class DetectedItem:
    path: Path        # actual path on disk
    kind: DetectedKind

def detect_kind(p: Path) -> DetectedKind:
    """
    Classify a single path.
    - .lp / .influx / .txt -> 'lineproto'
    - .csv                 -> 'csv'
    else                   -> 'unknown'
    """
    suffix = p.suffix.lower()
    if suffix in LINEPROTO_SUFFIXES:
        return "lineproto"
    if suffix == ".csv":
        return "csv"
    return "unknown"

def discover_inputs(root: Path, recurse: bool = True) -> list[DetectedItem]:
    """
    If 'root' is a file -> return that one item (if known).
    If 'root' is a folder -> walk (optionally recursively) and collect metric files.
    """
    items: list[DetectedItem] = []
    if root.is_file():
        kind = detect_kind(root)
        if kind != "unknown":
            items.append(DetectedItem(root.resolve(), kind))
        return items

    it = root.rglob("*") if recurse else root.glob("*")
    for p in it:
        if not p.is_file():
            continue
        kind = detect_kind(p)
        if kind != "unknown":
            items.append(DetectedItem(p.resolve(), kind))

    # deterministic ordering
    items.sort(key=lambda x: (str(x.path), x.kind))
    return items
