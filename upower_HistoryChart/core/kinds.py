# upower_HistoryChart/core/kinds.py
from __future__ import annotations
from dataclasses import dataclass, replace
import logging
from matplotlib.colors import is_color_like

from .plotting import ColorPolicy, ConstantMax, ObservedMaximum, YMaxPolicy, YStyle

_LOG = logging.getLogger(__name__)

DEFAULT_KIND = "charge"


@dataclass(frozen=True)
class ChartKind:
    name: str                 # CLI name: rate | charge | empty | full
    title: str
    file_stem: str            # history-<file_stem>-<device>.dat
    y_max: YMaxPolicy
    y_style: YStyle
    default_hours: float


DEFAULT_KINDS: dict[str, ChartKind] = {
    "rate":   ChartKind("rate",   "Rate",          "rate",       ObservedMaximum(), YStyle.RAW,   2.0),
    "charge": ChartKind("charge", "Charge",        "charge",     ConstantMax(100.0), YStyle.RAW,  6.0),
    "empty":  ChartKind("empty",  "Time to Empty", "time-empty", ObservedMaximum(), YStyle.HOURS, 6.0),
    "full":   ChartKind("full",   "Time to Full",  "time-full",  ObservedMaximum(), YStyle.HOURS, 2.0),
}


def _to_float(val):
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _parse_y_max(value, fallback: YMaxPolicy) -> YMaxPolicy:
    """'max' / 'observed' -> ObservedMaximum, a number -> ConstantMax, else fallback."""
    if value is None:
        return fallback
    if str(value).strip().lower() in ("max", "observed"):
        return ObservedMaximum()
    num = _to_float(value)
    return ConstantMax(num) if num is not None else fallback


def _parse_y_style(value, fallback: YStyle) -> YStyle:
    try:
        return YStyle(str(value).strip().lower()) if value is not None else fallback
    except ValueError:
        _LOG.warning("unknown y_style %r, keeping %s", value, fallback.value)
        return fallback


def kinds_from_config(cfg: dict | None) -> dict[str, ChartKind]:
    """
    Apply the ``charts`` section of config.yaml on top of DEFAULT_KINDS.
    Unknown kinds in config are ignored; unparsable values keep the default.
    """
    charts = (cfg or {}).get("charts", {}) or {}
    kinds = dict(DEFAULT_KINDS)
    for name, base in DEFAULT_KINDS.items():
        over = charts.get(name) or {}
        if not over:
            continue
        hours = _to_float(over.get("default_hours"))
        kinds[name] = replace(
            base,
            title=str(over.get("title", base.title)),
            y_max=_parse_y_max(over.get("y_max"), base.y_max),
            y_style=_parse_y_style(over.get("y_style"), base.y_style),
            default_hours=hours if hours is not None and hours > 0 else base.default_hours,
        )
    return kinds


def select_kind(kinds: dict[str, ChartKind], name: str | None) -> ChartKind:
    key = (name or "").strip().lower()
    if key not in kinds:
        if key:
            _LOG.warning("unknown chart kind %r, falling back to %s", name, DEFAULT_KIND)
        key = DEFAULT_KIND
    return kinds[key]


def _pick_color(col: dict, key: str, default: str) -> str:
    value = col.get(key)
    if value is None:
        return default
    if not is_color_like(value):
        _LOG.warning("invalid %s color %r, keeping %s", key, value, default)
        return default
    return str(value)


def colors_from_config(cfg: dict | None) -> ColorPolicy:
    col = (cfg or {}).get("colors", {}) or {}
    base = ColorPolicy()
    return ColorPolicy(
        charging=_pick_color(col, "charging", base.charging),
        discharging=_pick_color(col, "discharging", base.discharging),
        background=_pick_color(col, "background", base.background),
        text=_pick_color(col, "text", base.text),
    )
