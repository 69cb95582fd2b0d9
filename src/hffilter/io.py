"""Input/output helpers for JSON inputs and tabular decision export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .calibration import CalibrationMap
from .config import FilterConfig
from .enums import OriginType, is_bit_set, trigger_names
from .models import (
    EventDecision,
    EventInput,
    GammaCandidate,
    ThreeProngCandidate,
    TrackState,
    TwoProngCandidate,
)

_TRACK_FLOAT_FIELDS = (
    "dca_xy",
    "dca_z",
    "tpc_nsigma_el",
    "tpc_nsigma_pi",
    "tpc_nsigma_ka",
    "tpc_nsigma_pr",
    "tof_nsigma_el",
    "tof_nsigma_pi",
    "tof_nsigma_ka",
    "tof_nsigma_pr",
    "tpc_inner_param",
)


def load_events_json(path: str | Path) -> list[EventInput]:
    """Load multi-event input JSON into `EventInput` objects.

    Expected shape:
    {
      "events": [
        {
          "event_id": "...",
          "tracks": [{"track_index": 0, "px": ..., "py": ..., "pz": ..., ...}],
          "two_prongs": [[pos_index, neg_index], ...],
          "three_prongs": [[first_index, opposite_index, second_index], ...],
          "gammas": [{"eta": ..., "v0_radius": ..., ...}]
        },
        ...
      ]
    }
    """
    data = _load_json(path)
    events_data = data.get("events")
    if not isinstance(events_data, list):
        raise ValueError("Events JSON must contain a list under key 'events'.")
    out: list[EventInput] = []
    for idx, event in enumerate(events_data):
        if not isinstance(event, dict):
            raise ValueError(f"Event entry at index {idx} must be an object.")
        event_id = str(event.get("event_id", f"evt{idx}"))
        tracks_data = event.get("tracks")
        if not isinstance(tracks_data, list):
            raise ValueError(f"Event '{event_id}' must contain a list under key 'tracks'.")
        context = f"event '{event_id}'"
        tracks = tuple(
            _parse_track_item(item=track_item, idx=tidx, context=context)
            for tidx, track_item in enumerate(tracks_data)
        )
        two_prongs = tuple(
            TwoProngCandidate(*_parse_indices(item, 2, "two_prongs", context))
            for item in _optional_list(event, "two_prongs", context)
        )
        three_prongs = tuple(
            ThreeProngCandidate(*_parse_indices(item, 3, "three_prongs", context))
            for item in _optional_list(event, "three_prongs", context)
        )
        gammas = tuple(
            _parse_gamma_item(item=gamma_item, idx=gidx, context=context)
            for gidx, gamma_item in enumerate(_optional_list(event, "gammas", context))
        )
        out.append(
            EventInput(
                event_id=event_id,
                tracks=tracks,
                two_prongs=two_prongs,
                three_prongs=three_prongs,
                gammas=gammas,
            )
        )
    return out


def load_filter_config_json(path: str | Path) -> FilterConfig:
    """Load and validate a `FilterConfig` from a JSON document."""
    return FilterConfig.from_dict(_load_json(path))


def load_calibration_map_json(path: str | Path) -> CalibrationMap:
    """Load one `{"edges": ..., "values": ...}` calibration map document."""
    return CalibrationMap.from_dict(_load_json(path))


def write_decisions_table(path: str | Path, decisions: list[EventDecision]) -> None:
    """Write one row per accepted candidate into a Parquet/CSV/Pickle table.

    Events without accepted candidates still get one row so that their
    trigger bitmap is kept.
    """
    pd = _require_pandas()
    df = pd.DataFrame(_decision_rows(decisions))
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(out, index=False)
    elif suffix in (".pkl", ".pickle"):
        df.to_pickle(out)
    elif suffix == ".csv":
        df.to_csv(out, index=False)
    else:
        raise ValueError(
            f"Unsupported output format '{suffix}'. Use .parquet, .csv, or .pkl"
        )


def _decision_rows(decisions: list[EventDecision]) -> list[dict[str, Any]]:
    """Flatten event decisions into DataFrame-ready row dictionaries."""
    rows: list[dict[str, Any]] = []
    for decision in decisions:
        event_row: dict[str, Any] = {
            "event_id": decision.event_id,
            "triggers": decision.triggers,
            "trigger_names": ",".join(trigger_names(decision.triggers)),
        }
        if not decision.candidates:
            rows.append(dict(event_row, particle=None))
            continue
        for cand in decision.candidates:
            row = dict(event_row)
            row.update(
                {
                    "particle": cand.particle.name,
                    "prong_indices": ",".join(str(i) for i in cand.prong_indices),
                    "preselection_bits": cand.preselection_bits,
                    "hypothesis_bits": cand.hypothesis_bits,
                    "origin_bits": cand.origin_bits,
                    "is_prompt": is_bit_set(cand.origin_bits, OriginType.PROMPT),
                    "is_non_prompt": is_bit_set(cand.origin_bits, OriginType.NON_PROMPT),
                    "pt": cand.pt,
                    "px": cand.p4.px,
                    "py": cand.p4.py,
                    "pz": cand.p4.pz,
                }
            )
            for hyp_bit, mass in cand.masses.items():
                row[f"mass_hyp{hyp_bit}"] = mass
            for idx, score in enumerate(cand.scores):
                row[f"score{idx}"] = score
            rows.append(row)
    return rows


def _require_pandas():
    """Import pandas lazily and provide a clear installation hint on failure."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required to write output tables. Install pandas and pyarrow."
        ) from exc
    return pd


def _parse_track_item(item: Any, idx: int, context: str) -> TrackState:
    """Parse one track dictionary into a `TrackState`."""
    if not isinstance(item, dict):
        raise ValueError(f"Track entry at index {idx} in {context} must be an object.")
    try:
        kwargs: dict[str, Any] = {
            "track_index": int(item.get("track_index", idx)),
            "px": float(item["px"]),
            "py": float(item["py"]),
            "pz": float(item["pz"]),
        }
    except KeyError as exc:
        raise ValueError(f"Track at index {idx} in {context} misses momentum component {exc}.") from exc
    for name in _TRACK_FLOAT_FIELDS:
        if name in item:
            kwargs[name] = float(item[name])
    if "charge" in item:
        kwargs["charge"] = int(item["charge"])
    if "tpc_n_cls_found" in item:
        kwargs["tpc_n_cls_found"] = int(item["tpc_n_cls_found"])
    if "has_tof" in item:
        kwargs["has_tof"] = bool(item["has_tof"])
    if "is_global_track" in item:
        kwargs["is_global_track"] = bool(item["is_global_track"])
    return TrackState(**kwargs)


def _parse_gamma_item(item: Any, idx: int, context: str) -> GammaCandidate:
    """Parse one photon-conversion dictionary into a `GammaCandidate`."""
    if not isinstance(item, dict):
        raise ValueError(f"Gamma entry at index {idx} in {context} must be an object.")
    try:
        return GammaCandidate(
            eta=float(item["eta"]),
            v0_radius=float(item["v0_radius"]),
            alpha=float(item["alpha"]),
            qt_arm=float(item["qt_arm"]),
            psi_pair=float(item["psi_pair"]),
            cos_pa=float(item.get("cos_pa", 1.0)),
            px=float(item.get("px", 0.0)),
            py=float(item.get("py", 0.0)),
            pz=float(item.get("pz", 0.0)),
        )
    except KeyError as exc:
        raise ValueError(f"Gamma at index {idx} in {context} misses field {exc}.") from exc


def _optional_list(data: dict[str, Any], key: str, context: str) -> list[Any]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise ValueError(f"Key '{key}' in {context} must be a list.")
    return value


def _parse_indices(item: Any, n_prongs: int, key: str, context: str) -> tuple[int, ...]:
    """Validate one candidate entry given as a list of prong track indices."""
    if not isinstance(item, list) or len(item) != n_prongs:
        raise ValueError(f"Entries of '{key}' in {context} must be lists of {n_prongs} track indices.")
    return tuple(int(i) for i in item)


def _load_json(path: str | Path) -> dict[str, Any]:
    """Read and validate a JSON object document from disk."""
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"JSON document at {path} must be an object.")
    return data
