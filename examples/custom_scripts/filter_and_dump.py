"""Example custom callback: dump the candidates of triggered events."""

from __future__ import annotations

import json
from pathlib import Path


def process(decisions, context):
    """Collect triggered events and their candidates into a compact JSON report."""
    triggered = [d for d in decisions if d.triggers]
    payload = {
        "n_events": len(decisions),
        "n_triggered": len(triggered),
        "candidates": [
            {
                "event_id": d.event_id,
                "particle": c.particle.name,
                "prong_indices": list(c.prong_indices),
                "pt": c.pt,
                "masses": {str(k): v for k, v in c.masses.items()},
                "origin_bits": c.origin_bits,
            }
            for d in triggered
            for c in d.candidates
        ],
    }
    out = Path(context["output_path"]).with_name("triggered_candidates.json")
    out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote {out}")
