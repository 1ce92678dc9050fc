# upower_HistoryChart/main.py
from __future__ import annotations
from pathlib import Path
import argparse
import logging
import math
import sys
import yaml

from .core.kinds import colors_from_config, kinds_from_config, select_kind
from .core.model import PreconditionError, RenderError
from .core.pipeline import run_pipeline
from .loaders import history_loader
from .utils.detect import DEFAULT_HISTORY_DIR, history_path, resolve_device

here = Path(__file__).resolve().parent
DEFAULT_OUTPUT = Path("/tmp/out.svg")


def load_config(cfg_path: Path) -> dict:
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _parse_hours(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        hours = float(raw)
    except ValueError:
        return None
    # negative windows are kept; they filter everything out
    return hours if math.isfinite(hours) else None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="upower-history-chart",
                                description="Chart a UPower battery history as SVG.")
    p.add_argument("kind", nargs="?", default=None,
                   help="rate | charge | empty | full (default: charge)")
    p.add_argument("hours", nargs="?", default=None,
                   help="hours of history to show (default depends on kind; negative shows nothing)")
    p.add_argument("--config", type=Path, default=None, help="path to config.yaml")
    p.add_argument("--output", type=Path, default=None, help="output image path")
    p.add_argument("--device", default=None, help="UPower device id, e.g. ASUS_Battery-76")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # ---------- config ----------
    cfg_path = args.config or (here / "config.yaml")
    cfg = load_config(cfg_path) if cfg_path.exists() else {}

    verbose = bool((cfg.get("logging", {}) or {}).get("verbose", False))
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    inp = cfg.get("input", {}) or {}
    history_dir = Path(inp.get("history_dir") or DEFAULT_HISTORY_DIR)
    out_path = args.output or Path((cfg.get("output", {}) or {}).get("path") or DEFAULT_OUTPUT)
    tz = (cfg.get("display", {}) or {}).get("timezone")

    kind = select_kind(kinds_from_config(cfg), args.kind)
    hours = _parse_hours(args.hours)
    if verbose:
        print(f"[cfg] config={cfg_path if cfg else '(defaults)'}")
        print(f"[cfg] history_dir={history_dir} output={out_path} kind={kind.name}")

    # ---------- load ----------
    try:
        device = resolve_device(history_dir, args.device or inp.get("device"))
        path = history_path(history_dir, kind.file_stem, device)
        if verbose:
            print(f"[load] {path}")
        raw = history_loader.load(path)
        run_pipeline(raw, kind, out_path,
                     hours=hours,
                     colors=colors_from_config(cfg),
                     tz=tz,
                     verbose=verbose)
    except (PreconditionError, RenderError, OSError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    print(f"[OK] {kind.title} → {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
