# upower_HistoryChart/core/pipeline.py
from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
import logging
import pandas as pd

from .kinds import ChartKind
from .model import PreconditionError
from .normalize import filter_after_time, to_local_time
from .plotting import ColorPolicy, assemble, resolve_options

_LOG = logging.getLogger(__name__)


def window_start(hours: float, now: datetime | None = None) -> int:
    """Unix timestamp ``hours`` before ``now`` (UTC now by default)."""
    now = now or datetime.now(timezone.utc)
    return int(now.timestamp() - hours * 3600.0)


def prepare_history(raw: pd.DataFrame, hours: float, *, tz: str | None = None,
                    now: datetime | None = None) -> pd.DataFrame:
    """Window-filter a freshly loaded history and convert it to local wall-clock time."""
    df = filter_after_time(raw, window_start(hours, now))
    if df.empty:
        raise PreconditionError("All data filtered out")
    return to_local_time(df, tz)


def run_pipeline(raw: pd.DataFrame, kind: ChartKind, out_path: Path, *,
                 hours: float | None = None,
                 colors: ColorPolicy | None = None,
                 tz: str | None = None,
                 now: datetime | None = None,
                 verbose: bool = False) -> Path:
    """
    One batch pass: window → local time → options → segment + render.
    Either writes one complete image and returns its path, or raises.
    """
    hours = kind.default_hours if hours is None else hours
    df = prepare_history(raw, hours, tz=tz, now=now)
    if verbose:
        print(f"[pipeline] {kind.name}: {len(df)} point(s) in the last {hours:g} h")
    options = resolve_options(df, kind.title, kind.y_max, kind.y_style)
    _LOG.debug("resolved options: x=%s..%s y=%s", options.x_range[0], options.x_range[1], options.y_range)
    return assemble(df, options, colors, out_path, verbose=verbose)
