# metric_multiplier/loaders/csv_loader.py
from __future__ import annotations
from pathlib import Path
import io, logging
import numpy as np
import pandas as pd

from ..core.model import Metric, MetricError, new_metric

_LOG = logging.getLogger(__name__)

TAG_PREFIX = "tag."

# ---------- column helpers ----------
def parse_columns(df: pd.DataFrame):
    cmap = {str(c).strip().lower(): c for c in df.columns}
    name = cmap.get("name") or cmap.get("measurement")
    time = cmap.get("time") or cmap.get("timestamp")
    kind = cmap.get("kind")
    tags = [c for c in df.columns if str(c).strip().lower().startswith(TAG_PREFIX)]
    used = {name, time, kind, *tags}
    fields = [c for c in df.columns if c not in used]
    return name, time, kind, tags, fields

def to_abs_time(series) -> pd.Series:
    """Integer columns are epoch nanoseconds, anything else is parsed as a date string."""
    if pd.api.types.is_numeric_dtype(series):
        return pd.to_datetime(series, unit="ns", utc=True, errors="coerce")
    return pd.to_datetime(series, utc=True, errors="coerce")

def _field_value(v):
    if isinstance(v, np.bool_):
        return bool(v)
    return v

# ---------- CSV normalization ----------
def _metrics_from_df(df: pd.DataFrame, source: str) -> list[Metric]:
    name_col, time_col, kind_col, tag_cols, field_cols = parse_columns(df)
    if name_col is None:
        raise ValueError(f"{source}: CSV missing required column 'name'.")
    if not field_cols:
        raise ValueError(f"{source}: CSV has no field columns.")

    times = to_abs_time(df[time_col]) if time_col is not None else None
    now = pd.Timestamp.now(tz="UTC")
    columns = {c: df[c].to_numpy() for c in field_cols}

    metrics: list[Metric] = []
    for i in range(len(df)):
        tags = {}
        for c in tag_cols:
            v = df[c].iloc[i]
            if not pd.isna(v):
                tags[str(c)[len(TAG_PREFIX):]] = str(v)
        fields = {}
        for c, values in columns.items():
            v = values[i]
            if pd.isna(v):
                continue
            fields[str(c)] = _field_value(v)
        ts = times.iloc[i] if times is not None else pd.NaT
        kind = str(df[kind_col].iloc[i]) if kind_col is not None and not pd.isna(df[kind_col].iloc[i]) else "untyped"
        try:
            metrics.append(new_metric(str(df[name_col].iloc[i]), tags, fields,
                                      now if pd.isna(ts) else ts, kind))
        except MetricError as e:
            _LOG.warning("%s: row %d skipped: %s", source, i + 1, e)
    return metrics

# ---------- public loader ----------
def load(path: Path, cfg: dict | None = None) -> list[Metric]:
    """
    Accepts: a CSV with a 'name' column, optional 'time'/'kind' columns,
    'tag.<key>' columns for tags and any other column as a field.
    Returns: one Metric per row, empty cells omitted.
    """
    df = pd.read_csv(io.BytesIO(path.read_bytes()), sep=",", decimal=".", low_memory=False)
    metrics = _metrics_from_df(df, path.name)
    _LOG.debug("loaded %d metric(s) from %s", len(metrics), path.name)
    return metrics
