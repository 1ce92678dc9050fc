# upower_HistoryChart/core/plotting.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import logging
import matplotlib
matplotlib.use("Agg")
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker
import numpy as np
import pandas as pd

from .model import Mode, RenderError, RunSet
from .normalize import check_time_ordered, validate_history
from .segment import segment

_LOG = logging.getLogger(__name__)

CANVAS_PX: tuple[int, int] = (1024, 768)
CANVAS_DPI = 100
TITLE_PT = 28
LABEL_PT = 14


class YStyle(str, Enum):
    RAW = "raw"
    HOURS = "hours"           # value is seconds, labelled H:MM


@dataclass(frozen=True)
class ConstantMax:
    value: float


@dataclass(frozen=True)
class ObservedMaximum:
    pass


YMaxPolicy = ConstantMax | ObservedMaximum


@dataclass(frozen=True)
class ColorPolicy:
    charging: str = "#a6e3a1"
    discharging: str = "#f38ba8"
    background: str = "#1e1e2e"
    text: str = "#cdd6f4"

    def for_mode(self, mode: Mode) -> str:
        return self.charging if mode is Mode.CHARGING else self.discharging


@dataclass(frozen=True)
class ChartOptions:
    title: str
    x_range: tuple[pd.Timestamp, pd.Timestamp]
    y_range: tuple[float, float]
    y_style: YStyle = YStyle.RAW


@dataclass(frozen=True)
class Series:
    mode: Mode
    color: str
    x: np.ndarray = field(repr=False)
    y: np.ndarray = field(repr=False)

    def __len__(self) -> int:
        return len(self.x)


# ---------- label formatters ----------
def y_raw(y: float) -> str:
    y = float(y)
    return f"{int(y)}" if y.is_integer() else f"{y}"


def y_hours(y: float) -> str:
    """Seconds as H:MM, truncated (5425 -> '1:30')."""
    hours = max(int(y / 3600.0), 0)
    mins = max(int(y / 60.0), 0) % 60
    return f"{hours}:{mins:02d}"


def y_formatter(style: YStyle):
    return y_hours if YStyle(style) is YStyle.HOURS else y_raw


# ---------- option / series resolution ----------
def resolve_y_max(df: pd.DataFrame, policy: YMaxPolicy) -> float:
    if isinstance(policy, ConstantMax):
        return float(policy.value)
    values = df["value"].to_numpy(float)
    return float(max(0.0, np.max(values))) if values.size else 0.0


def resolve_options(df: pd.DataFrame, title: str, y_max: YMaxPolicy,
                    y_style: YStyle = YStyle.RAW) -> ChartOptions:
    validate_history(df)
    check_time_ordered(df)
    return ChartOptions(
        title=title,
        x_range=(df["abs_time"].iloc[0], df["abs_time"].iloc[-1]),
        y_range=(0.0, resolve_y_max(df, y_max)),
        y_style=YStyle(y_style),
    )


def build_series(df: pd.DataFrame, runs: RunSet, colors: ColorPolicy) -> list[Series]:
    """One Series per run: every discharging run, then every charging run, each chronological."""
    ordered = sorted(runs.chronological(), key=lambda r: r.mode is Mode.CHARGING)  # stable
    out: list[Series] = []
    for run in ordered:
        part = run.take(df)
        out.append(Series(
            mode=run.mode,
            color=colors.for_mode(run.mode),
            x=part["abs_time"].to_numpy(),
            y=part["value"].to_numpy(float),
        ))
    return out


# ---------- rendering ----------
def render_figure(options: ChartOptions, series: list[Series], colors: ColorPolicy):
    """Lay out the canvas, axes and series lines; caller owns (and must close) the figure."""
    w, h = CANVAS_PX
    fig, ax = plt.subplots(figsize=(w / CANVAS_DPI, h / CANVAS_DPI), dpi=CANVAS_DPI)
    fig.patch.set_facecolor(colors.background)
    ax.set_facecolor(colors.background)

    ax.set_title(options.title, color=colors.text, fontsize=TITLE_PT, fontfamily="sans-serif")
    ax.grid(False)
    for spine in ax.spines.values():
        spine.set_edgecolor(colors.text)
        spine.set_linewidth(1)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.tick_params(colors=colors.text, labelsize=LABEL_PT)

    for s in series:
        ax.plot(s.x, s.y, color=s.color, linewidth=1)

    # a zero-width range (single point) is left to autoscale
    x0, x1 = options.x_range
    if x0 != x1:
        ax.set_xlim(x0, x1)
    y0, y1 = options.y_range
    if y1 > y0:
        ax.set_ylim(y0, y1)

    ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M"))
    fmt = y_formatter(options.y_style)
    ax.yaxis.set_major_formatter(ticker.FuncFormatter(lambda v, _pos: fmt(v)))

    fig.subplots_adjust(left=0.10, right=0.98, top=0.90, bottom=0.06)
    return fig


def draw_chart(options: ChartOptions, series: list[Series], out_path: Path,
               colors: ColorPolicy | None = None, verbose: bool = False) -> Path:
    colors = colors or ColorPolicy()
    out_path = Path(out_path)
    fig = None
    try:
        fig = render_figure(options, series, colors)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fmt = out_path.suffix.lstrip(".").lower() or "svg"
        fig.savefig(out_path, format=fmt, facecolor=fig.get_facecolor())
    except (OSError, ValueError) as e:
        raise RenderError(f"failed to write chart {out_path}: {e}") from e
    finally:
        if fig is not None:
            plt.close(fig)
    if verbose:
        print(f"[OK] {options.title}: {len(series)} series → {out_path}")
    _LOG.info("wrote chart %s (%d series)", out_path, len(series))
    return out_path


def assemble(df: pd.DataFrame, options: ChartOptions, colors: ColorPolicy | None,
             out_path: Path, verbose: bool = False) -> Path:
    """Segment a validated, time-ordered history and render it to ``out_path``."""
    validate_history(df)
    check_time_ordered(df)
    colors = colors or ColorPolicy()
    runs = segment(df)
    series = build_series(df, runs, colors)
    return draw_chart(options, series, out_path, colors=colors, verbose=verbose)
