"""SUMO/TraCI adapter for the co-simulation.

This module implements the traffic-engine side of the co-simulation:
- SUMO process and TraCI connection management
- Stepping the SUMO clock up to a target step index
- Reading induction-loop / lane-area detectors
- Applying red/yellow/green states to traffic lights
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, List, Optional
import logging
import os
import sys

from src.cosim.engines import DetectorState, TrafficCatalog

from .scenario import ScenarioModel, load_scenario

if TYPE_CHECKING:
    from src.cosim.config import SimulationConfig

LOG = logging.getLogger(__name__)

TRACI_AVAILABLE = False
try:
    if "SUMO_HOME" in os.environ:
        tools_path = os.path.join(os.environ["SUMO_HOME"], "tools")
        if tools_path not in sys.path:
            sys.path.append(tools_path)
    import traci
    TRACI_AVAILABLE = True
except ImportError:
    traci = None
    LOG.warning("TraCI not available. Install SUMO and set SUMO_HOME environment variable.")


@dataclass
class TraCIConfig:
    """Configuration for TraCI connection."""

    sumo_cfg_path: str = ""
    sumo_binary: str = "sumo"
    sumo_gui: bool = False
    sumo_port: int = 8813
    sumo_seed: int = 7
    sumo_step_length: float = 1.0
    sumo_additional_args: List[str] = field(default_factory=list)

    label: str = "default"


class TraCIConnection:
    """Manages TraCI connection to SUMO simulation."""

    def __init__(self, config: TraCIConfig) -> None:
        self.config = config
        self.connected = False
        self.current_time = 0.0
        self.step_count = 0
        self._conn: Any = None

    def command(self) -> List[str]:
        binary = self.config.sumo_binary
        if self.config.sumo_gui:
            binary = binary.replace("sumo", "sumo-gui")
        return [
            binary,
            "-c", self.config.sumo_cfg_path,
            "--step-length", str(self.config.sumo_step_length),
            "--seed", str(self.config.sumo_seed),
            "--start",
            "--quit-on-end",
            *self.config.sumo_additional_args,
        ]

    def connect(self) -> None:
        """Start SUMO and establish TraCI connection."""
        if not TRACI_AVAILABLE:
            raise RuntimeError("TraCI not available. Install SUMO and set SUMO_HOME.")

        if self.connected:
            raise RuntimeError(f"Already connected to SUMO ({self.config.label})")

        sumo_cmd = self.command()
        LOG.info("Starting SUMO: %s", " ".join(sumo_cmd))

        traci.start(sumo_cmd, label=self.config.label, port=self.config.sumo_port)
        self._conn = traci.getConnection(self.config.label)
        self.connected = True
        self.current_time = self._conn.simulation.getTime()
        self.step_count = 0

        LOG.info("Connected to SUMO at time %.2f", self.current_time)

    def disconnect(self) -> None:
        """Close TraCI connection."""
        if not self.connected:
            return

        try:
            self._conn.close()
        except traci.TraCIException as e:
            LOG.warning("Error closing TraCI: %s", e)

        self.connected = False
        self._conn = None
        LOG.info("Disconnected from SUMO after %d steps", self.step_count)

    def _require(self) -> Any:
        if not self.connected:
            raise RuntimeError("Not connected to SUMO")
        return self._conn

    def step(self) -> float:
        """Advance simulation by one step."""
        conn = self._require()
        conn.simulationStep()
        self.step_count += 1
        self.current_time = conn.simulation.getTime()
        return self.current_time

    def read_detector(self, detector_id: str, kind: str = "inductionLoop") -> DetectorState:
        """Read last-step vehicle count, occupancy and vehicle types of a detector."""
        conn = self._require()
        domain = conn.lanearea if kind in ("laneAreaDetector", "e2Detector") else conn.inductionloop
        count = int(domain.getLastStepVehicleNumber(detector_id))
        occupancy = float(domain.getLastStepOccupancy(detector_id))
        type_ids = tuple(conn.vehicle.getTypeID(veh) for veh in domain.getLastStepVehicleIDs(detector_id))
        return DetectorState(occupied=occupancy > 0.0 or count > 0, vehicle_count=count, vehicle_types=type_ids)

    def set_signal_state(self, tl_id: str, state: str) -> None:
        conn = self._require()
        conn.trafficlight.setRedYellowGreenState(tl_id, state)

    def get_simulation_end(self) -> bool:
        """Check if simulation has ended."""
        if not self.connected:
            return True

        try:
            return self._conn.simulation.getMinExpectedNumber() <= 0
        except traci.TraCIException:
            return True


class TraCITrafficEngine:
    """Traffic engine backed by a SUMO process driven over TraCI."""

    def __init__(self, config: TraCIConfig) -> None:
        self.config = config
        self.connection = TraCIConnection(config)
        self._scenario: Optional[ScenarioModel] = None

    @classmethod
    def from_simulation_config(cls, sim_config: "SimulationConfig") -> "TraCITrafficEngine":
        traffic = sim_config.traffic
        return cls(
            TraCIConfig(
                sumo_cfg_path=str(sim_config.files.sumo_cfg_path),
                sumo_binary=traffic.sumo_binary,
                sumo_gui=traffic.sumo_gui,
                sumo_port=traffic.sumo_port,
                sumo_seed=traffic.sumo_seed,
                sumo_step_length=traffic.sumo_step_length,
                sumo_additional_args=list(traffic.additional_args),
                label=traffic.label,
            )
        )

    @property
    def scenario(self) -> ScenarioModel:
        if self._scenario is None:
            self._scenario = load_scenario(Path(self.config.sumo_cfg_path))
        return self._scenario

    def catalog(self) -> TrafficCatalog:
        return self.scenario.catalog

    def initialize(self) -> None:
        self.connection.connect()

    def step(self, to_index: int) -> None:
        """Advance SUMO until ``to_index`` steps have been simulated."""
        if to_index < self.connection.step_count:
            raise ValueError(f"Cannot step back from {self.connection.step_count} to {to_index}")
        while self.connection.step_count < to_index:
            self.connection.step()

    def as_task(self, on_step: Callable[[int], None]) -> Callable[[], int]:
        """Return a callable running one SUMO step and then ``on_step``."""

        def run_one_step() -> int:
            target = self.connection.step_count + 1
            self.step(target)
            on_step(target)
            return target

        return run_one_step

    def read_detector(self, sumo_id: str) -> DetectorState:
        kind = self.scenario.detector_kinds.get(sumo_id, "inductionLoop")
        return self.connection.read_detector(sumo_id, kind)

    def set_signal_state(self, sumo_id: str, state: str) -> None:
        self.connection.set_signal_state(sumo_id, state)

    def finished(self) -> bool:
        return self.connection.get_simulation_end()

    def close(self) -> None:
        self.connection.disconnect()

