"""Detector bindings between the traffic and signal engines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple
import logging

from .engines import DetectorState, SignalCatalog, TrafficEngine
from .errors import UnresolvedDetectorError

if TYPE_CHECKING:
    from .config import SimulationConfig

LOG = logging.getLogger(__name__)


@dataclass
class DetectorBinding:
    id: str
    sumo_id: str
    signal_id: str
    state: DetectorState = DetectorState()


class DetectorBridge:
    """Resolves configured detectors in both engines and tracks their state."""

    def __init__(self) -> None:
        self._bindings: Dict[str, DetectorBinding] = {}
        self._traffic: Optional[TrafficEngine] = None

    def load(
        self,
        config: "SimulationConfig",
        signal_catalog: SignalCatalog,
        traffic: TrafficEngine,
    ) -> None:
        """Bind every configured detector, or none of them.

        All missing ids are collected before failing so the error lists the
        complete set of problems.
        """
        traffic_catalog = traffic.catalog()
        bindings: Dict[str, DetectorBinding] = {}
        missing: List[Tuple[str, str]] = []
        for spec in config.detectors:
            if spec.signal_id not in signal_catalog.detectors:
                missing.append((spec.id, "signal engine"))
            if spec.sumo_id not in traffic_catalog.detectors:
                missing.append((spec.id, "traffic engine"))
            bindings[spec.id] = DetectorBinding(id=spec.id, sumo_id=spec.sumo_id, signal_id=spec.signal_id)

        if missing:
            self._bindings = {}
            self._traffic = None
            raise UnresolvedDetectorError(missing)

        self._bindings = bindings
        self._traffic = traffic
        LOG.info("Bound %d detectors", len(bindings))

    def refresh(self) -> None:
        """Pull the latest observation of every bound detector from SUMO."""
        if self._traffic is None:
            return
        for binding in self._bindings.values():
            binding.state = self._traffic.read_detector(binding.sumo_id)

    def get(self, detector_id: str) -> DetectorState:
        return self._bindings[detector_id].state

    def binding(self, detector_id: str) -> DetectorBinding:
        return self._bindings[detector_id]

    def ids(self) -> List[str]:
        return list(self._bindings)

    def bindings(self) -> List[DetectorBinding]:
        return list(self._bindings.values())

    def __contains__(self, detector_id: object) -> bool:
        return detector_id in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)
