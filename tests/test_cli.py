"""End-to-end test of the command-line entrypoint."""

from __future__ import annotations

import dataclasses
import json
import math
import tempfile
import textwrap
import unittest
from pathlib import Path

import pandas as pd

from hffilter import LorentzVector, TrackState
from hffilter.cli import build_parser, main
from hffilter.pid import D0, KAON, PION


def _high_pt_dzero_event() -> dict:
    q = 0.5 * math.sqrt((D0.mass**2 - (PION.mass + KAON.mass) ** 2) * (D0.mass**2 - (KAON.mass - PION.mass) ** 2)) / D0.mass
    pion = LorentzVector.from_momentum((0.0, q, 0.0), PION.mass).boost(0.985, 0.0, 0.0)
    kaon = LorentzVector.from_momentum((0.0, -q, 0.0), KAON.mass).boost(0.985, 0.0, 0.0)
    tracks = [
        TrackState(track_index=0, px=pion.px, py=pion.py, pz=0.0, charge=1, tpc_nsigma_ka=10.0),
        TrackState(track_index=1, px=kaon.px, py=kaon.py, pz=0.0, charge=-1, tpc_nsigma_pi=10.0),
    ]
    return {
        "event_id": "evt0",
        "tracks": [dataclasses.asdict(t) for t in tracks],
        "two_prongs": [[0, 1]],
    }


CUSTOM_SCRIPT = textwrap.dedent(
    """
    import json
    from pathlib import Path


    def process(decisions, context):
        marker = Path(context["output_path"]).with_suffix(".summary.json")
        marker.write_text(json.dumps({"n_events": len(decisions), "qa": context["config"].activate_qa}))
    """
)


class TestCommandLine(unittest.TestCase):
    """Load inputs, filter, write the table and run the post-processing hook."""

    def test_parser_requires_inputs(self) -> None:
        """The parser exits when a required option is missing."""
        with self.assertRaises(SystemExit):
            build_parser().parse_args(["--events", "events.json"])

    def test_main_writes_decision_table_and_runs_custom_script(self) -> None:
        """A full run writes the decision table and calls the custom script."""
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            events = tmp / "events.json"
            events.write_text(json.dumps({"events": [_high_pt_dzero_event(), {"tracks": []}]}), encoding="utf-8")
            config = tmp / "config.json"
            config.write_text(json.dumps({"activate_qa": 1}), encoding="utf-8")
            script = tmp / "summary.py"
            script.write_text(CUSTOM_SCRIPT, encoding="utf-8")
            out = tmp / "decisions.csv"

            code = main(
                [
                    "--events", str(events),
                    "--config", str(config),
                    "--out", str(out),
                    "--verbosity", "warning",
                    "--custom-script", str(script),
                ]
            )
            df = pd.read_csv(out)
            summary = json.loads(out.with_suffix(".summary.json").read_text(encoding="utf-8"))

        self.assertEqual(code, 0)
        self.assertEqual(list(df["event_id"]), ["evt0", "evt1"])
        self.assertEqual(df.iloc[0]["trigger_names"], "HIGH_PT_2P")
        self.assertEqual(df.iloc[0]["particle"], "D0")
        self.assertEqual(summary, {"n_events": 2, "qa": 1})

    def test_post_calibration_needs_a_calibration_directory(self) -> None:
        """Post-calibration without a map directory fails the run."""
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            events = tmp / "events.json"
            events.write_text(json.dumps({"events": []}), encoding="utf-8")
            config = tmp / "config.json"
            config.write_text(json.dumps({"compute_tpc_post_calib": True}), encoding="utf-8")
            with self.assertRaises(SystemExit):
                main(["--events", str(events), "--config", str(config), "--out", str(tmp / "out.csv")])


if __name__ == "__main__":
    unittest.main()
