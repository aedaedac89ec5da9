"""Static model of the signal-control engine, read from its data directory.

``<data_dir>/signal_model.yaml``::

    control_units:
      CU1:
        signal_groups: [K1, K2]
        detectors: [D1, D2]
    detectors: [D9]        # optional, detectors not owned by a unit
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Set, Tuple

from src.cosim.config import load_config
from src.cosim.engines import SignalCatalog
from src.cosim.errors import ConfigError

MODEL_FILE = "signal_model.yaml"


def _str_list(value, where: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"{where} must be a list")
    return tuple(str(v) for v in value)


def load_signal_model(data_dir: str | Path) -> SignalCatalog:
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise ConfigError(f"Signal data directory not found: {data_dir}")
    raw = load_config(data_dir / MODEL_FILE)

    units_raw = raw.get("control_units") or {}
    if not isinstance(units_raw, dict):
        raise ConfigError(f"{MODEL_FILE}: 'control_units' must be a mapping")

    control_units: Dict[str, Tuple[str, ...]] = {}
    detectors: Set[str] = set(_str_list(raw.get("detectors"), f"{MODEL_FILE}: detectors"))
    for cu_id, unit in units_raw.items():
        unit = unit or {}
        if not isinstance(unit, dict):
            raise ConfigError(f"{MODEL_FILE}: control unit {cu_id} must be a mapping")
        control_units[str(cu_id)] = _str_list(unit.get("signal_groups"), f"{cu_id}.signal_groups")
        detectors.update(_str_list(unit.get("detectors"), f"{cu_id}.detectors"))

    return SignalCatalog(control_units=control_units, detectors=frozenset(detectors))
