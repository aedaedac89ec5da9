"""Static view of a SUMO scenario, read from its files without starting SUMO.

Detector and traffic-light ids have to be resolvable before the simulation is
launched, so they are taken from the ``.sumocfg`` and the net/additional files
it references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List
import logging
import re
import xml.etree.ElementTree as ET

from src.cosim.engines import TrafficCatalog
from src.cosim.errors import ConfigError

LOG = logging.getLogger(__name__)

# Only kinds readable through the TraCI inductionloop and lanearea domains.
DETECTOR_TAGS = (
    "inductionLoop",
    "e1Detector",
    "laneAreaDetector",
    "e2Detector",
)


@dataclass
class ScenarioFiles:
    sumo_cfg_path: Path
    net_files: List[Path] = field(default_factory=list)
    additional_files: List[Path] = field(default_factory=list)
    route_files: List[Path] = field(default_factory=list)


def _parse_xml(path: Path) -> ET.Element:
    try:
        return ET.parse(path).getroot()
    except OSError as exc:
        raise ConfigError(f"Cannot read SUMO file {path}: {exc}") from exc
    except ET.ParseError as exc:
        raise ConfigError(f"SUMO file {path} is not valid XML: {exc}") from exc


def _split_files(value: str, base: Path) -> List[Path]:
    return [(base / name).resolve() for name in re.split(r"[,\s]+", value.strip()) if name]


def read_sumocfg(sumo_cfg_path: str | Path) -> ScenarioFiles:
    """Collect the net, additional and route files referenced by a .sumocfg."""
    cfg_path = Path(sumo_cfg_path).resolve()
    root = _parse_xml(cfg_path)
    base = cfg_path.parent
    files = ScenarioFiles(sumo_cfg_path=cfg_path)
    for tag, target in (
        ("net-file", files.net_files),
        ("additional-files", files.additional_files),
        ("route-files", files.route_files),
    ):
        for node in root.iter(tag):
            target.extend(_split_files(node.get("value", ""), base))
    if not files.net_files:
        raise ConfigError(f"{cfg_path} does not reference a net-file")
    return files


def read_traffic_lights(net_path: Path) -> Dict[str, int]:
    """Map each tlLogic id to the number of links it controls."""
    lights: Dict[str, int] = {}
    for logic in _parse_xml(net_path).iter("tlLogic"):
        tl_id = logic.get("id")
        if not tl_id:
            continue
        phase = logic.find("phase")
        count = len(phase.get("state", "")) if phase is not None else 0
        lights[tl_id] = max(lights.get(tl_id, 0), count)
    return lights


def read_detectors(additional_path: Path) -> Dict[str, str]:
    """Map each detector id in an additional file to its element tag."""
    root = _parse_xml(additional_path)
    found: Dict[str, str] = {}
    for tag in DETECTOR_TAGS:
        for node in root.iter(tag):
            det_id = node.get("id")
            if det_id:
                found[det_id] = tag
    return found


@dataclass(frozen=True)
class ScenarioModel:
    catalog: TrafficCatalog
    detector_kinds: Dict[str, str]


def load_scenario(sumo_cfg_path: str | Path) -> ScenarioModel:
    files = read_sumocfg(sumo_cfg_path)
    lights: Dict[str, int] = {}
    for net in files.net_files:
        lights.update(read_traffic_lights(net))
    kinds: Dict[str, str] = {}
    for additional in files.additional_files:
        kinds.update(read_detectors(additional))
    LOG.info(
        "Scenario %s: %d traffic lights, %d detectors",
        files.sumo_cfg_path.name,
        len(lights),
        len(kinds),
    )
    catalog = TrafficCatalog(detectors=frozenset(kinds), traffic_lights=lights)
    return ScenarioModel(catalog=catalog, detector_kinds=kinds)


def load_traffic_catalog(sumo_cfg_path: str | Path) -> TrafficCatalog:
    return load_scenario(sumo_cfg_path).catalog
