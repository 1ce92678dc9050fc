# upower_HistoryChart/core/segment.py
from __future__ import annotations
import logging
import numpy as np
import pandas as pd

from .model import Mode, PreconditionError, Run, RunSet

_LOG = logging.getLogger(__name__)


def _where_state_changes(state: pd.Series) -> np.ndarray:
    s = state.astype(str).to_numpy()
    return np.flatnonzero(s[1:] != s[:-1]) + 1  # first index of each new run


def segment(df: pd.DataFrame) -> RunSet:
    """
    Partition a time-ordered history frame into maximal runs of constant state.

    Runs are half-open row ranges [start, stop) over ``df``; nothing is copied.
    Charging and discharging runs are returned in separate tuples, each in
    chronological order. An empty frame is rejected with PreconditionError.
    """
    if df is None or len(df) == 0:
        raise PreconditionError("cannot segment an empty history")

    n = len(df)
    states = df["state"]
    charging: list[Run] = []
    discharging: list[Run] = []

    starts = [0, *_where_state_changes(states).tolist()]
    stops = starts[1:] + [n]
    for a, b in zip(starts, stops):
        run = Run(mode=Mode(states.iloc[a]), start=a, stop=b)
        (charging if run.mode is Mode.CHARGING else discharging).append(run)

    _LOG.debug("segmented %d rows into %d charging / %d discharging runs",
               n, len(charging), len(discharging))
    return RunSet(charging=tuple(charging), discharging=tuple(discharging))
