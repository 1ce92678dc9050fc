# upower_HistoryChart/loaders/history_loader.py
from __future__ import annotations
from pathlib import Path
import io, logging
import pandas as pd

from ..core.normalize import HISTORY_COLUMNS, MODE_NAMES, to_float, to_state

_LOG = logging.getLogger(__name__)


# ---------- TSV normalization ----------
def _df_from_tsv_bytes(buff: bytes) -> pd.DataFrame:
    """
    UPower history: no header, tab separated ``<unix seconds>\\t<value>\\t<state>``.
    Rows that do not parse, or whose state is neither charging nor discharging, are dropped.
    """
    if not buff.strip():
        return pd.DataFrame({c: pd.Series(dtype=t) for c, t in
                             zip(HISTORY_COLUMNS, ("int64", "float64", "object"))})
    raw = pd.read_csv(io.BytesIO(buff), sep="\t", header=None, dtype=str,
                      names=list(HISTORY_COLUMNS), on_bad_lines="skip", engine="python",
                      encoding_errors="replace")
    cols = {
        "abs_time": pd.to_numeric(raw["abs_time"], errors="coerce"),
        "value":    to_float(raw["value"]),
        "state":    to_state(raw["state"]),
    }
    df = pd.DataFrame(cols).dropna(subset=["abs_time", "value"])
    known = df["state"].isin(MODE_NAMES)
    dropped = len(raw) - int(known.sum())
    if dropped:
        _LOG.debug("dropped %d unparsable or non charging/discharging row(s)", dropped)
    df = df[known].copy()
    df["abs_time"] = df["abs_time"].astype("int64")
    # stable sort keeps file order for equal timestamps
    out = df.sort_values("abs_time", kind="mergesort")
    return out.reset_index(drop=True)


# ---------- public loader ----------
def load(path: Path) -> pd.DataFrame:
    """
    Read one history file into the canonical frame with ``abs_time`` still as unix seconds.
    Raises FileNotFoundError if ``path`` does not exist.
    """
    path = Path(path)
    df = _df_from_tsv_bytes(path.read_bytes())
    _LOG.info("loaded %d row(s) from %s", len(df), path.name)
    return df
