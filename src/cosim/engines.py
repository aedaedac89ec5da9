"""Capability interfaces of the two co-simulated engines.

The orchestrator depends only on these protocols, so either side can be
replaced by a stub in tests or by a different concrete engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Mapping, Optional, Protocol, Tuple

if TYPE_CHECKING:
    from .control_units import ControlUnitBridge
    from .detectors import DetectorBridge
    from .vehicle_types import VehicleTypeRegistry


class InitResponse(Enum):
    OK = "ok"
    SIGNAL_SERVER_UNREACHABLE = "signal_server_unreachable"


@dataclass(frozen=True)
class DetectorState:
    """Observed state of a detector during the last step."""

    occupied: bool = False
    vehicle_count: int = 0
    vehicle_types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TrafficCatalog:
    """Static model of the traffic scenario.

    ``traffic_lights`` maps a traffic light id to the number of links it
    controls (the length of its red/yellow/green state string).
    """

    detectors: FrozenSet[str] = frozenset()
    traffic_lights: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SignalCatalog:
    """Static model of the signal engine: control units and their detectors."""

    control_units: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    detectors: FrozenSet[str] = frozenset()


class StepListener(Protocol):
    def on_step(self, step: int) -> None:
        ...


class TrafficEngine(Protocol):
    def catalog(self) -> TrafficCatalog:
        ...

    def initialize(self) -> None:
        ...

    def step(self, to_index: int) -> None:
        ...

    def as_task(self, on_step: Callable[[int], None]) -> Callable[[], int]:
        ...

    def read_detector(self, sumo_id: str) -> DetectorState:
        ...

    def set_signal_state(self, sumo_id: str, state: str) -> None:
        ...

    def close(self) -> None:
        ...


class SignalEngine(Protocol):
    def load(self, data_dir: Path) -> None:
        ...

    def catalog(self) -> SignalCatalog:
        ...

    def bind(
        self,
        detectors: "DetectorBridge",
        control_units: "ControlUnitBridge",
        vehicle_types: Optional["VehicleTypeRegistry"] = None,
    ) -> None:
        ...

    def initialize(self) -> InitResponse:
        ...

    def step(self, step: int) -> None:
        ...


SignalStates = Dict[str, Dict[str, str]]
