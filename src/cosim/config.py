"""Co-simulation configuration.

The YAML file is parsed once by :func:`load_simulation_config`; everything
downstream works with the frozen dataclasses defined here. Relative paths are
resolved against the directory holding the config file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load a YAML config file into a mapping.

    Missing files, YAML syntax errors and non-mapping documents all surface as
    ``ConfigError`` so callers deal with a single failure type.
    """
    resolved = Path(path)
    try:
        with open(resolved, "r", encoding="utf-8") as handle:
            config = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {resolved}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc
    if not isinstance(config, dict):
        raise ConfigError(f"{resolved} must contain a mapping at top level, got {type(config).__name__}")
    return config


def require_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' is missing or not a mapping")
    return section


@dataclass(frozen=True)
class TrafficSettings:
    """SUMO launch settings."""

    sumo_cfg_path: str = ""
    sumo_binary: str = "sumo"
    sumo_gui: bool = False
    sumo_port: int = 8813
    sumo_seed: int = 7
    sumo_step_length: float = 1.0
    label: str = "cosim"
    additional_args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.sumo_cfg_path:
            raise ConfigError("traffic.sumo_cfg_path is required")
        if self.sumo_step_length <= 0:
            raise ConfigError("traffic.sumo_step_length must be > 0")
        if not 0 < self.sumo_port < 65536:
            raise ConfigError(f"traffic.sumo_port out of range: {self.sumo_port}")


@dataclass(frozen=True)
class SignalSettings:
    """Where the signal-control service lives and where its data is."""

    base_url: str = "http://localhost:9091"
    data_directory: str = ""
    timeout_sec: float = 5.0

    def __post_init__(self) -> None:
        if not self.data_directory:
            raise ConfigError("signal.data_directory is required")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(f"signal.base_url must be an http(s) URL: {self.base_url!r}")
        if self.timeout_sec <= 0:
            raise ConfigError("signal.timeout_sec must be > 0")


@dataclass(frozen=True)
class VehicleTypeSettings:
    source: Optional[str] = None
    strict: bool = False


@dataclass(frozen=True)
class DetectorSpec:
    id: str
    sumo_id: str
    signal_id: str


@dataclass(frozen=True)
class ControlUnitSpec:
    """A control unit and how its signal groups map onto SUMO link indices."""

    id: str
    sumo_id: str
    signal_id: str
    signal_groups: Mapping[str, Tuple[int, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class SimulationFiles:
    """Resolved file-system locations referenced by the configuration."""

    config_path: Path
    sumo_cfg_path: Path
    signal_data_dir: Path
    vehicle_type_source: Optional[Path] = None

    @property
    def config_dir(self) -> Path:
        return self.config_path.parent


@dataclass(frozen=True)
class SimulationConfig:
    traffic: TrafficSettings
    signal: SignalSettings
    files: SimulationFiles
    vehicle_types: VehicleTypeSettings = field(default_factory=VehicleTypeSettings)
    detectors: Tuple[DetectorSpec, ...] = ()
    control_units: Tuple[ControlUnitSpec, ...] = ()

    @property
    def detector_ids(self) -> List[str]:
        return [d.id for d in self.detectors]

    @property
    def control_unit_ids(self) -> List[str]:
        return [c.id for c in self.control_units]


def _build(cls, section: Dict[str, Any], name: str):
    known = set(cls.__dataclass_fields__)
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {', '.join(unknown)}")
    try:
        return cls(**section)
    except TypeError as exc:
        raise ConfigError(f"Invalid '{name}' section: {exc}") from exc


def _parse_traffic(raw: Dict[str, Any]) -> TrafficSettings:
    section = dict(raw)
    if "additional_args" in section:
        args = section["additional_args"] or []
        if not isinstance(args, list):
            raise ConfigError("traffic.additional_args must be a list")
        section["additional_args"] = tuple(str(a) for a in args)
    return _build(TrafficSettings, section, "traffic")


def _parse_detectors(raw: Any) -> Tuple[DetectorSpec, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("'detectors' must be a list")
    specs: List[DetectorSpec] = []
    seen = set()
    for idx, entry in enumerate(raw):
        if isinstance(entry, (str, int)):
            det_id = str(entry)
            spec = DetectorSpec(id=det_id, sumo_id=det_id, signal_id=det_id)
        elif isinstance(entry, dict) and entry.get("id") is not None:
            det_id = str(entry["id"])
            spec = DetectorSpec(
                id=det_id,
                sumo_id=str(entry.get("sumo_id", det_id)),
                signal_id=str(entry.get("signal_id", det_id)),
            )
        else:
            raise ConfigError(f"detectors[{idx}] must be an id or a mapping with 'id'")
        if det_id in seen:
            raise ConfigError(f"Duplicate detector id in config: {det_id}")
        seen.add(det_id)
        specs.append(spec)
    return tuple(specs)


def _parse_signal_groups(cu_id: str, raw: Any) -> Dict[str, Tuple[int, ...]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"control_units[{cu_id}].signal_groups must be a mapping")
    groups: Dict[str, Tuple[int, ...]] = {}
    for group, links in raw.items():
        if isinstance(links, int):
            links = [links]
        if not isinstance(links, list) or not all(isinstance(i, int) and i >= 0 for i in links):
            raise ConfigError(
                f"control_units[{cu_id}].signal_groups[{group}] must be a list of link indices >= 0"
            )
        groups[str(group)] = tuple(links)
    return groups


def _parse_control_units(raw: Any) -> Tuple[ControlUnitSpec, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("'control_units' must be a list")
    specs: List[ControlUnitSpec] = []
    seen = set()
    for idx, entry in enumerate(raw):
        if isinstance(entry, (str, int)):
            entry = {"id": entry}
        if not isinstance(entry, dict) or entry.get("id") is None:
            raise ConfigError(f"control_units[{idx}] must be an id or a mapping with 'id'")
        cu_id = str(entry["id"])
        if cu_id in seen:
            raise ConfigError(f"Duplicate control unit id in config: {cu_id}")
        seen.add(cu_id)
        specs.append(
            ControlUnitSpec(
                id=cu_id,
                sumo_id=str(entry.get("sumo_id", cu_id)),
                signal_id=str(entry.get("signal_id", cu_id)),
                signal_groups=_parse_signal_groups(cu_id, entry.get("signal_groups")),
            )
        )
    return tuple(specs)


def _resolve(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def parse_simulation_config(raw: Dict[str, Any], config_path: str | Path) -> SimulationConfig:
    """Build a :class:`SimulationConfig` from an already-parsed mapping."""
    config_path = Path(config_path).resolve()
    base = config_path.parent

    traffic = _parse_traffic(require_section(raw, "traffic"))
    signal = _build(SignalSettings, dict(require_section(raw, "signal")), "signal")
    vtypes_raw = raw.get("vehicle_types") or {}
    if isinstance(vtypes_raw, str):
        vtypes_raw = {"source": vtypes_raw}
    if not isinstance(vtypes_raw, dict):
        raise ConfigError("'vehicle_types' must be a path or a mapping")
    vehicle_types = _build(VehicleTypeSettings, dict(vtypes_raw), "vehicle_types")

    files = SimulationFiles(
        config_path=config_path,
        sumo_cfg_path=_resolve(base, traffic.sumo_cfg_path),
        signal_data_dir=_resolve(base, signal.data_directory),
        vehicle_type_source=_resolve(base, vehicle_types.source) if vehicle_types.source else None,
    )
    return SimulationConfig(
        traffic=traffic,
        signal=signal,
        files=files,
        vehicle_types=vehicle_types,
        detectors=_parse_detectors(raw.get("detectors")),
        control_units=_parse_control_units(raw.get("control_units")),
    )


def load_simulation_config(path: str | Path) -> SimulationConfig:
    """Read and validate a co-simulation YAML config."""
    return parse_simulation_config(load_config(path), path)
