"""Co-simulation core: orchestrator, bridges and vehicle type registry.

Usage:
    from src.cosim import CoSimulation, InitResponse

    sim = CoSimulation()
    sim.load("scenario/cosim.yaml")
    if sim.initialize_before_play() is InitResponse.OK:
        task = sim.get_task()
        for _ in range(3600):
            task()
"""

from .config import (
    ControlUnitSpec,
    DetectorSpec,
    SignalSettings,
    SimulationConfig,
    SimulationFiles,
    TrafficSettings,
    VehicleTypeSettings,
    load_simulation_config,
    parse_simulation_config,
)
from .control_units import ControlUnitBinding, ControlUnitBridge
from .detectors import DetectorBinding, DetectorBridge
from .engines import (
    DetectorState,
    InitResponse,
    SignalCatalog,
    SignalEngine,
    StepListener,
    TrafficCatalog,
    TrafficEngine,
)
from .errors import (
    CoSimulationError,
    ConfigError,
    ListenerError,
    SignalEngineError,
    SignalServerUnreachableError,
    SimulationStateError,
    StepExecutionError,
    UnresolvedBindingError,
    UnresolvedControlUnitError,
    UnresolvedDetectorError,
)
from .orchestrator import CoSimulation, SimulationState
from .step_stats import StepTimingListener
from .vehicle_types import EntryFailure, VehicleType, VehicleTypeLoadReport, VehicleTypeRegistry

__all__ = [
    "CoSimulation",
    "SimulationState",
    "InitResponse",
    "SimulationConfig",
    "SimulationFiles",
    "TrafficSettings",
    "SignalSettings",
    "VehicleTypeSettings",
    "DetectorSpec",
    "ControlUnitSpec",
    "load_simulation_config",
    "parse_simulation_config",
    "DetectorBridge",
    "DetectorBinding",
    "ControlUnitBridge",
    "ControlUnitBinding",
    "VehicleTypeRegistry",
    "VehicleType",
    "VehicleTypeLoadReport",
    "EntryFailure",
    "DetectorState",
    "SignalCatalog",
    "TrafficCatalog",
    "SignalEngine",
    "TrafficEngine",
    "StepListener",
    "StepTimingListener",
    "CoSimulationError",
    "ConfigError",
    "UnresolvedBindingError",
    "UnresolvedDetectorError",
    "UnresolvedControlUnitError",
    "SimulationStateError",
    "SignalEngineError",
    "SignalServerUnreachableError",
    "StepExecutionError",
    "ListenerError",
]
