# upower_HistoryChart/utils/detect.py
from __future__ import annotations
from pathlib import Path
import re

DEFAULT_HISTORY_DIR = Path("/var/lib/upower")

_HISTORY_RE = re.compile(r"^history-(rate|charge|time-empty|time-full)-(?P<device>.+)\.dat$")


def history_path(history_dir: Path, file_stem: str, device: str) -> Path:
    """<history_dir>/history-<file_stem>-<device>.dat"""
    return Path(history_dir) / f"history-{file_stem}-{device}.dat"


def discover_devices(history_dir: Path) -> list[str]:
    """
    List the device ids that have at least one history file in ``history_dir``.
    Returns [] if the folder does not exist.
    """
    root = Path(history_dir)
    if not root.is_dir():
        return []
    devices: set[str] = set()
    for p in root.glob("history-*.dat"):
        m = _HISTORY_RE.match(p.name)
        if m and p.is_file():
            devices.add(m.group("device"))
    # deterministic ordering
    return sorted(devices)


def resolve_device(history_dir: Path, device: str | None) -> str:
    if device:
        return device
    found = discover_devices(history_dir)
    if not found:
        raise FileNotFoundError(f"no UPower history files found under {history_dir}")
    return found[0]
