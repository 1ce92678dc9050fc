# upower_HistoryChart/core/normalize.py
from __future__ import annotations
from typing import Iterable
import numpy as np
import pandas as pd
from dateutil import tz as dtz

from .model import Mode, PreconditionError, Record

HISTORY_COLUMNS: tuple[str, ...] = ("abs_time", "value", "state")
MODE_NAMES: frozenset[str] = frozenset(m.value for m in Mode)


def frame_from_records(records: Iterable[Record]) -> pd.DataFrame:
    """Build the canonical history frame (abs_time, value, state) from Records."""
    rows = [(r.timestamp, float(r.value), Mode(r.mode).value) for r in records]
    df = pd.DataFrame(rows, columns=list(HISTORY_COLUMNS))
    df["abs_time"] = pd.to_datetime(df["abs_time"])
    df["value"] = df["value"].astype(float)
    df["state"] = df["state"].astype(str)
    return df


def to_float(s) -> pd.Series:
    if pd.api.types.is_numeric_dtype(s):
        return s.astype(float)
    return pd.to_numeric(s.astype(str).str.replace(",", ".", regex=False), errors="coerce")


def to_state(s) -> pd.Series:
    return s.astype(str).str.strip().str.lower()


def filter_after_time(df: pd.DataFrame, remove_before: int) -> pd.DataFrame:
    """
    Drop the leading rows whose unix timestamp is older than ``remove_before``.
    Only the leading run is skipped; once a row passes, everything after it is kept.
    """
    if df.empty:
        return df
    old = (df["abs_time"] < remove_before).to_numpy()
    keep_from = int(np.argmin(old)) if not old.all() else len(df)
    return df.iloc[keep_from:].reset_index(drop=True)


def to_local_time(df: pd.DataFrame, tz: str | None = None) -> pd.DataFrame:
    """
    Convert unix seconds in ``abs_time`` to naive wall-clock time.
    The local zone (or ``tz``) is applied per timestamp, so rows on either side of a DST switch get their own offset.
    """
    zone = tz or dtz.tzlocal()
    out = df.copy()
    stamps = pd.to_datetime(out["abs_time"].astype("int64"), unit="s", utc=True)
    out["abs_time"] = stamps.dt.tz_convert(zone).dt.tz_localize(None)
    return out


def validate_history(df: pd.DataFrame) -> None:
    if df is None or df.empty:
        raise PreconditionError("history is empty")
    missing = [c for c in HISTORY_COLUMNS if c not in df.columns]
    if missing:
        raise PreconditionError(f"history missing columns: {', '.join(missing)}")
    if df["abs_time"].isna().any():
        raise PreconditionError("history contains rows without a timestamp")
    values = pd.to_numeric(df["value"], errors="coerce").to_numpy(float)
    if not np.isfinite(values).all():
        raise PreconditionError("history contains non-finite values")
    unknown = set(df["state"].astype(str)) - MODE_NAMES
    if unknown:
        raise PreconditionError(f"history contains unknown states: {sorted(unknown)}")


def check_time_ordered(df: pd.DataFrame) -> None:
    if not df["abs_time"].is_monotonic_increasing:
        raise PreconditionError("history timestamps are not in ascending order")
