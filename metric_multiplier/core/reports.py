# metric_multiplier/core/reports.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Literal, Sequence
import numpy as np
import pandas as pd
from scipy.io import savemat

from .diagnostics import Diagnostic

ReportFormat = Literal["csv", "mat", "both"]

REPORT_COLUMNS = ["kind", "metric", "field", "factor", "value_type", "value", "message"]

_LOG = logging.getLogger(__name__)


def build_dataframe(diagnostics: Sequence[Diagnostic]) -> pd.DataFrame:
    """One row per diagnostic plus a TOTAL row counting them per kind."""
    rows = [d.as_row() for d in diagnostics]
    counts = pd.Series([d.kind for d in diagnostics], dtype="object").value_counts()
    summary = ", ".join(f"{k}={int(n)}" for k, n in sorted(counts.items()))
    rows.append({"kind": "TOTAL", "metric": "", "field": "", "factor": "",
                 "value_type": "", "value": str(len(diagnostics)), "message": summary})
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def _write_csv(df_out: pd.DataFrame, out_csv: Path, title: str) -> None:
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df_out.to_csv(out_csv, index=False, encoding="utf-8")
    _LOG.info("wrote report: %s -> %s", title, out_csv)


def _to_mat_cellstr(seq: list) -> np.ndarray:
    """Make a MATLAB column cell array from a list of strings."""
    seq2 = [("" if s is None else str(s)) for s in seq]
    arr = np.empty((len(seq2), 1), dtype=object)
    arr[:, 0] = seq2
    return arr


def _write_mat(df_out: pd.DataFrame, out_mat: Path, varname: str, title: str) -> None:
    """All columns become Nx1 cell arrays of strings (factor is blank on many rows)."""
    out_mat.parent.mkdir(parents=True, exist_ok=True)
    mat_struct = {col: _to_mat_cellstr(df_out[col].tolist()) for col in REPORT_COLUMNS}
    savemat(out_mat, {varname: mat_struct})
    _LOG.info("wrote report: %s -> %s", title, out_mat)


def write_report(diagnostics: Sequence[Diagnostic],
                 out_base: Path,
                 title: str,
                 fmt: ReportFormat = "csv",
                 mat_variable: str = "diagnostics") -> None:
    """
    Write the diagnostics collected during a run.
    - out_base is a *base path without extension* (e.g., .../diagnostics)
    - fmt: "csv" | "mat" | "both"
    """
    if not diagnostics:
        return
    df_out = build_dataframe(diagnostics)
    if fmt in ("csv", "both"):
        _write_csv(df_out, out_base.with_suffix(".csv"), title)
    if fmt in ("mat", "both"):
        _write_mat(df_out, out_base.with_suffix(".mat"), mat_variable, title)
