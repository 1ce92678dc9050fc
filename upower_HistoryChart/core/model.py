# upower_HistoryChart/core/model.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import pandas as pd


class Mode(str, Enum):
    CHARGING = "charging"
    DISCHARGING = "discharging"


class PreconditionError(ValueError):
    """Input history is empty, malformed or out of time order."""


class RenderError(RuntimeError):
    """The chart image could not be produced or written."""


@dataclass(frozen=True)
class Record:
    timestamp: pd.Timestamp   # naive local wall-clock time
    value: float
    mode: Mode


@dataclass(frozen=True)
class Run:
    mode: Mode
    start: int                # first row (inclusive) in the history frame
    stop: int                 # last row (exclusive)

    def __len__(self) -> int:
        return self.stop - self.start

    def take(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.start:self.stop]


@dataclass(frozen=True)
class RunSet:
    charging: tuple[Run, ...]
    discharging: tuple[Run, ...]

    def chronological(self) -> list[Run]:
        return sorted(self.charging + self.discharging, key=lambda r: r.start)

    def __len__(self) -> int:
        return len(self.charging) + len(self.discharging)
