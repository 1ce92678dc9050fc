import pandas as pd
from datetime import datetime, timezone
from pathlib import Path
import os
import tempfile
import time
import unittest

import matplotlib.pyplot as plt
import yaml

from upower_HistoryChart.core.kinds import (
    DEFAULT_KINDS,
    colors_from_config,
    kinds_from_config,
    select_kind,
)
from upower_HistoryChart.core.model import PreconditionError
from upower_HistoryChart.core.normalize import filter_after_time, to_local_time
from upower_HistoryChart.core.pipeline import run_pipeline
from upower_HistoryChart.core.plotting import ConstantMax, ObservedMaximum, YStyle
from upower_HistoryChart.loaders.history_loader import load
from upower_HistoryChart.main import main
from upower_HistoryChart.utils.detect import discover_devices, history_path, resolve_device

T0 = 1700000000  # 2023-11-14 22:13:20 UTC


def _write_history(path: Path, rows) -> Path:
    path.write_text("".join(f"{t}\t{v}\t{s}\n" for t, v, s in rows), encoding="utf-8")
    return path


class LoaderTests(unittest.TestCase):
    def test_foreign_states_and_garbage_are_skipped(self):
        rows = [
            (T0, "50.0", "charging"),
            (T0 + 60, "51.0", "charging"),
            (T0 + 120, "49.5", "discharging"),
            (T0 + 180, "49.0", "unknown"),
            (T0 + 240, "48.0", "fully-charged"),
            (T0 + 300, "47.0", "discharging"),
        ]
        with tempfile.TemporaryDirectory() as tmpdir:
            p = _write_history(Path(tmpdir) / "history-charge-BAT0.dat", rows)
            with p.open("a", encoding="utf-8") as f:
                f.write("garbage\n")
            df = load(p)
        self.assertEqual([T0, T0 + 60, T0 + 120, T0 + 300], df["abs_time"].tolist())
        self.assertEqual(["charging", "charging", "discharging", "discharging"], df["state"].tolist())
        self.assertEqual([50.0, 51.0, 49.5, 47.0], df["value"].tolist())

    def test_rows_are_sorted_by_time(self):
        rows = [(T0 + 60, "2", "charging"), (T0, "1", "discharging")]
        with tempfile.TemporaryDirectory() as tmpdir:
            df = load(_write_history(Path(tmpdir) / "h.dat", rows))
        self.assertEqual([T0, T0 + 60], df["abs_time"].tolist())

    def test_empty_file_gives_empty_frame(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            p = Path(tmpdir) / "h.dat"
            p.write_text("", encoding="utf-8")
            df = load(p)
        self.assertTrue(df.empty)
        self.assertEqual(["abs_time", "value", "state"], list(df.columns))

    def test_undecodable_row_is_dropped(self):
        raw = (b"1700000000\t50\tcharging\n"
               b"1700000060\t\xff\xfe\tcharging\n"
               b"1700000120\t51\tdischarging\n")
        with tempfile.TemporaryDirectory() as tmpdir:
            p = Path(tmpdir) / "h.dat"
            p.write_bytes(raw)
            df = load(p)
        self.assertEqual([T0, T0 + 120], df["abs_time"].tolist())
        self.assertEqual([50.0, 51.0], df["value"].tolist())

    def test_missing_file_raises(self):
        with self.assertRaises(FileNotFoundError):
            load(Path("/nonexistent/history-charge-X.dat"))


class WindowTests(unittest.TestCase):
    def _df(self, stamps):
        return pd.DataFrame({
            "abs_time": stamps,
            "value": [1.0] * len(stamps),
            "state": ["charging"] * len(stamps),
        })

    def test_only_leading_old_rows_are_dropped(self):
        out = filter_after_time(self._df([100, 200, 50, 300]), 150)
        self.assertEqual([200, 50, 300], out["abs_time"].tolist())

    def test_everything_old_gives_empty(self):
        self.assertTrue(filter_after_time(self._df([100, 120]), 150).empty)

    def test_local_time_conversion(self):
        out = to_local_time(self._df([T0]), tz="UTC")
        self.assertEqual(pd.Timestamp("2023-11-14 22:13:20"), out["abs_time"].iloc[0])

    @unittest.skipUnless(hasattr(time, "tzset"), "needs time.tzset")
    def test_local_time_uses_offset_of_each_timestamp(self):
        before = 1711845000  # 2024-03-31 00:30 UTC, CET (+01) in Berlin
        after = before + 3600  # 01:30 UTC, CEST (+02) after the switch
        old_tz = os.environ.get("TZ")
        os.environ["TZ"] = "Europe/Berlin"
        time.tzset()
        try:
            out = to_local_time(self._df([before, after]))
        finally:
            if old_tz is None:
                os.environ.pop("TZ", None)
            else:
                os.environ["TZ"] = old_tz
            time.tzset()
        self.assertEqual([pd.Timestamp("2024-03-31 01:30:00"), pd.Timestamp("2024-03-31 03:30:00")],
                         out["abs_time"].tolist())


class KindTests(unittest.TestCase):
    def test_defaults(self):
        kinds = kinds_from_config({})
        self.assertEqual(ConstantMax(100.0), kinds["charge"].y_max)
        self.assertEqual(ObservedMaximum(), kinds["rate"].y_max)
        self.assertEqual(YStyle.HOURS, kinds["empty"].y_style)
        self.assertEqual("time-full", kinds["full"].file_stem)
        self.assertEqual(2.0, kinds["full"].default_hours)

    def test_config_overrides_and_bad_values(self):
        cfg = {"charts": {"rate": {"y_max": 50, "y_style": "hours", "default_hours": "x"}}}
        rate = kinds_from_config(cfg)["rate"]
        self.assertEqual(ConstantMax(50.0), rate.y_max)
        self.assertEqual(YStyle.HOURS, rate.y_style)
        self.assertEqual(2.0, rate.default_hours)

    def test_unknown_kind_falls_back_to_charge(self):
        self.assertIs(DEFAULT_KINDS["charge"], select_kind(DEFAULT_KINDS, "bogus"))
        self.assertIs(DEFAULT_KINDS["charge"], select_kind(DEFAULT_KINDS, None))
        self.assertIs(DEFAULT_KINDS["empty"], select_kind(DEFAULT_KINDS, "EMPTY"))

    def test_colors_from_config(self):
        colors = colors_from_config({"colors": {"charging": "#00ff00"}})
        self.assertEqual("#00ff00", colors.charging)
        self.assertEqual("#f38ba8", colors.discharging)

    def test_invalid_config_color_keeps_default(self):
        colors = colors_from_config({"colors": {"charging": "greeen", "text": "white"}})
        self.assertEqual("#a6e3a1", colors.charging)
        self.assertEqual("white", colors.text)


class DetectTests(unittest.TestCase):
    def test_discover_devices(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for name in ("history-charge-BAT1.dat", "history-time-empty-BAT0.dat", "notes.txt"):
                (root / name).write_text("", encoding="utf-8")
            self.assertEqual(["BAT0", "BAT1"], discover_devices(root))
            self.assertEqual("BAT0", resolve_device(root, None))
            self.assertEqual("CUSTOM", resolve_device(root, "CUSTOM"))
        self.assertEqual(Path("/x/history-time-full-BAT0.dat"),
                         history_path(Path("/x"), "time-full", "BAT0"))

    def test_no_devices_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                resolve_device(Path(tmpdir) / "missing", None)


class PipelineTests(unittest.TestCase):
    def test_run_pipeline_writes_chart(self):
        raw = pd.DataFrame({
            "abs_time": [T0, T0 + 60, T0 + 120, T0 + 180],
            "value": [40.0, 42.0, 41.0, 39.0],
            "state": ["charging", "charging", "discharging", "discharging"],
        })
        now = datetime(2023, 11, 15, tzinfo=timezone.utc)
        with tempfile.TemporaryDirectory() as tmpdir:
            out = run_pipeline(raw, DEFAULT_KINDS["charge"], Path(tmpdir) / "c.svg", tz="UTC", now=now)
            self.assertTrue(out.exists())

    def test_run_pipeline_rejects_filtered_out_history(self):
        raw = pd.DataFrame({"abs_time": [T0], "value": [1.0], "state": ["charging"]})
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with tempfile.TemporaryDirectory() as tmpdir:
            out = Path(tmpdir) / "c.svg"
            with self.assertRaises(PreconditionError):
                run_pipeline(raw, DEFAULT_KINDS["charge"], out, tz="UTC", now=now)
            self.assertFalse(out.exists())


class MainTests(unittest.TestCase):
    def _setup(self, tmpdir: Path, ages_s, stem="charge", extra=None):
        now = int(time.time())
        states = ["charging", "discharging"]
        rows = [(now - age, 50.0 + i, states[(i // 2) % 2]) for i, age in enumerate(sorted(ages_s, reverse=True))]
        _write_history(history_path(tmpdir, stem, "BAT0"), rows)
        out = tmpdir / "out.svg"
        cfg = {
            "input": {"history_dir": str(tmpdir), "device": "BAT0"},
            "output": {"path": str(out)},
            "display": {"timezone": "UTC"},
            "logging": {"verbose": False},
        }
        cfg.update(extra or {})
        cfg_path = tmpdir / "config.yaml"
        cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
        return cfg_path, out

    def test_main_renders_svg(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, out = self._setup(Path(tmpdir), [60, 600, 1200, 1800, 2400])
            self.assertEqual(0, main(["charge", "--config", str(cfg_path)]))
            self.assertIn("<svg", out.read_text(encoding="utf-8"))

    def test_unknown_kind_and_bad_hours_fall_back(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, out = self._setup(Path(tmpdir), [60, 600, 1200])
            self.assertEqual(0, main(["bogus", "soon", "--config", str(cfg_path)]))
            self.assertTrue(out.exists())

    def test_window_with_no_data_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, out = self._setup(Path(tmpdir), [5 * 3600, 4 * 3600])
            self.assertEqual(1, main(["charge", "1", "--config", str(cfg_path)]))
            self.assertFalse(out.exists())

    def test_missing_history_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, out = self._setup(Path(tmpdir), [60, 120])
            self.assertEqual(1, main(["rate", "--config", str(cfg_path)]))
            self.assertFalse(out.exists())

    def test_negative_hours_filter_everything_out(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, out = self._setup(Path(tmpdir), [60, 600, 1200])
            self.assertEqual(1, main(["charge", "-1", "--config", str(cfg_path)]))
            self.assertFalse(out.exists())

    def test_bad_config_color_falls_back_to_default(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, out = self._setup(Path(tmpdir), [60, 600, 1200],
                                        extra={"colors": {"charging": "greeen"}})
            self.assertEqual(0, main(["charge", "--config", str(cfg_path)]))
            self.assertTrue(out.exists())

    def test_render_failure_returns_error_status(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path, _ = self._setup(Path(tmpdir), [60, 600, 1200])
            bad_out = Path(tmpdir) / "out.notaformat"
            self.assertEqual(1, main(["charge", "--config", str(cfg_path), "--output", str(bad_out)]))
            self.assertFalse(bad_out.exists())
            self.assertEqual([], plt.get_fignums())


if __name__ == "__main__":
    unittest.main()
