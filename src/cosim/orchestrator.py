"""Co-simulation orchestrator.

Keeps SUMO and the signal-control service in lock-step:

- ``load`` builds both engine adapters and the bridges between them
- ``initialize_before_play`` brings the signal service up first and only then
  starts SUMO
- ``execute_step`` pushes a step into the signal engine (which reads the
  detectors and applies control-unit states to SUMO) and then notifies the
  registered step listeners in registration order
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple
import logging
import threading

from .config import SimulationConfig, SimulationFiles, load_simulation_config
from .control_units import ControlUnitBridge
from .detectors import DetectorBridge
from .engines import InitResponse, SignalEngine, TrafficEngine
from .errors import (
    ConfigError,
    ListenerError,
    SimulationStateError,
    StepExecutionError,
)
from .vehicle_types import VehicleTypeLoadReport, VehicleTypeRegistry

LOG = logging.getLogger(__name__)

TrafficFactory = Callable[[SimulationConfig], TrafficEngine]
SignalFactory = Callable[[SimulationConfig], SignalEngine]


def default_traffic_factory(config: SimulationConfig) -> TrafficEngine:
    from src.sim_sumo.traci_adapter import TraCITrafficEngine

    return TraCITrafficEngine.from_simulation_config(config)


def default_signal_factory(config: SimulationConfig) -> SignalEngine:
    from src.signal_ctrl.engine import RestSignalEngine

    return RestSignalEngine.from_settings(config.signal)


class SimulationState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    INITIALIZED = "initialized"
    STEPPING = "stepping"


class CoSimulation:
    """Owns the shared step clock and both engine adapters for one run."""

    def __init__(
        self,
        traffic_factory: Optional[TrafficFactory] = None,
        signal_factory: Optional[SignalFactory] = None,
    ) -> None:
        self._traffic_factory = traffic_factory or default_traffic_factory
        self._signal_factory = signal_factory or default_signal_factory

        self._listeners: List[Tuple[Any, Callable[[int], None]]] = []
        self._step_lock = threading.Lock()

        self._state = SimulationState.UNLOADED
        self._current_step = 0
        self._config: Optional[SimulationConfig] = None
        self._traffic: Optional[TrafficEngine] = None
        self._signal: Optional[SignalEngine] = None
        self._detectors: Optional[DetectorBridge] = None
        self._control_units: Optional[ControlUnitBridge] = None
        self._vehicle_types: Optional[VehicleTypeRegistry] = None
        self._vehicle_type_report: Optional[VehicleTypeLoadReport] = None
        self._signal_ready = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def current_step(self) -> int:
        return self._current_step

    def get_current_step(self) -> int:
        return self._current_step

    @property
    def config(self) -> Optional[SimulationConfig]:
        return self._config

    @property
    def files(self) -> Optional[SimulationFiles]:
        return self._config.files if self._config else None

    @property
    def traffic(self) -> Optional[TrafficEngine]:
        return self._traffic

    @property
    def signal(self) -> Optional[SignalEngine]:
        return self._signal

    @property
    def detectors(self) -> Optional[DetectorBridge]:
        return self._detectors

    @property
    def control_units(self) -> Optional[ControlUnitBridge]:
        return self._control_units

    @property
    def vehicle_types(self) -> Optional[VehicleTypeRegistry]:
        return self._vehicle_types

    @property
    def vehicle_type_report(self) -> Optional[VehicleTypeLoadReport]:
        return self._vehicle_type_report

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, config_path: str | Path) -> SimulationConfig:
        """Parse ``config_path`` and rebuild every engine and bridge from it."""
        config = load_simulation_config(config_path)
        self.load_config(config)
        return config

    def load_config(self, config: SimulationConfig) -> None:
        """Rebuild from an already-parsed config.

        Nothing is committed until every part has loaded; on failure the
        previous state (if any) is left as it was.
        """
        if self._step_lock.locked():
            raise SimulationStateError("Cannot reload while a step is in flight")

        vehicle_types = VehicleTypeRegistry()
        report: Optional[VehicleTypeLoadReport] = None
        if config.files.vehicle_type_source is not None:
            report = vehicle_types.load(config.files.vehicle_type_source)
            if config.vehicle_types.strict and not report.ok:
                reasons = "; ".join(f"#{f.index} {f.entry_id}: {f.reason}" for f in report.failures)
                raise ConfigError(f"Malformed vehicle types in {report.source}: {reasons}")

        traffic = self._traffic_factory(config)
        try:
            signal = self._signal_factory(config)
            signal.load(config.files.signal_data_dir)
            signal_catalog = signal.catalog()

            control_units = ControlUnitBridge()
            control_units.load(config, signal_catalog, traffic)

            detectors = DetectorBridge()
            detectors.load(config, signal_catalog, traffic)

            signal.bind(detectors, control_units, vehicle_types)
        except Exception:
            traffic.close()
            raise

        previous = self._traffic
        self._config = config
        self._traffic = traffic
        self._signal = signal
        self._control_units = control_units
        self._detectors = detectors
        self._vehicle_types = vehicle_types
        self._vehicle_type_report = report
        self._current_step = 0
        self._state = SimulationState.LOADED
        self._signal_ready = False
        if previous is not None and previous is not traffic:
            previous.close()

        LOG.info(
            "Loaded %s: %d detectors, %d control units, %d vehicle types",
            config.files.config_path,
            len(detectors),
            len(control_units),
            len(vehicle_types),
        )

    def initialize_before_play(self) -> InitResponse:
        """Initialize the signal engine, then (only if it is reachable) SUMO.

        The signal engine is initialized at most once per load: if SUMO fails
        to start afterwards, a retry only repeats the traffic side.
        """
        if self._state is not SimulationState.LOADED:
            raise SimulationStateError(
                f"initialize_before_play requires a freshly loaded simulation, state is {self._state.value}"
            )

        if not self._signal_ready:
            response = self._signal.initialize()
            if response is not InitResponse.OK:
                LOG.warning("Signal engine not ready (%s); traffic engine left untouched", response.value)
                return response
            self._signal_ready = True
        else:
            LOG.info("Signal engine already initialized for this load; retrying traffic engine only")

        self._current_step = 0
        self._traffic.initialize()
        self._state = SimulationState.INITIALIZED
        LOG.info("Co-simulation initialized")
        return InitResponse.OK

    def close(self) -> None:
        """Disconnect the traffic engine and drop all loaded state."""
        if self._traffic is not None:
            self._traffic.close()
        self._traffic = None
        self._signal = None
        self._detectors = None
        self._control_units = None
        self._vehicle_types = None
        self._vehicle_type_report = None
        self._config = None
        self._current_step = 0
        self._state = SimulationState.UNLOADED
        self._signal_ready = False

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def add_step_listener(self, listener: Any) -> None:
        """Register an observer called with every completed step index.

        ``listener`` is either an object with ``on_step(step)`` or a plain
        callable. Registration is only allowed before stepping starts.
        """
        if self._state is SimulationState.STEPPING or self._step_lock.locked():
            raise SimulationStateError("Step listeners cannot be added while stepping")
        callback = getattr(listener, "on_step", listener)
        if not callable(callback):
            raise TypeError(f"Step listener must be callable or define on_step(): {listener!r}")
        self._listeners.append((listener, callback))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def get_task(self) -> Callable[[], int]:
        """Return the traffic engine's unit of work bound to this clock.

        Each call advances SUMO by one step and then runs
        :meth:`execute_step` for the new index.
        """
        if self._traffic is None:
            raise SimulationStateError("No simulation loaded")
        if self._state not in (SimulationState.INITIALIZED, SimulationState.STEPPING):
            raise SimulationStateError(
                f"get_task requires an initialized simulation, state is {self._state.value}"
            )
        return self._traffic.as_task(self.execute_step)

    def execute_step(self, step: int) -> None:
        """Advance the shared clock to ``step``.

        The counter moves to ``step`` even when the signal engine fails;
        the failure is raised only after every listener has been notified.
        """
        if not self._step_lock.acquire(blocking=False):
            raise SimulationStateError(f"Step {step} requested while another step is in flight")
        try:
            if self._state not in (SimulationState.INITIALIZED, SimulationState.STEPPING):
                raise SimulationStateError(
                    f"execute_step requires an initialized simulation, state is {self._state.value}"
                )
            if step <= self._current_step:
                raise ValueError(f"Step index must increase: got {step}, current step is {self._current_step}")

            self._current_step = step
            self._state = SimulationState.STEPPING

            engine_error: Optional[Exception] = None
            try:
                self._signal.step(step)
            except Exception as exc:
                LOG.error("Signal engine failed at step %d: %s", step, exc)
                engine_error = exc

            failures = self._notify(step)
        finally:
            self._step_lock.release()

        if engine_error is not None:
            raise StepExecutionError(step, engine_error, failures) from engine_error
        if failures:
            raise ListenerError(step, failures)

    def _notify(self, step: int) -> List[Tuple[Any, BaseException]]:
        failures: List[Tuple[Any, BaseException]] = []
        for listener, callback in self._listeners:
            try:
                callback(step)
            except Exception as exc:
                LOG.warning("Step listener %r failed at step %d: %s", listener, step, exc)
                failures.append((listener, exc))
        LOG.debug("Step %d delivered to %d listeners", step, len(self._listeners))
        return failures
