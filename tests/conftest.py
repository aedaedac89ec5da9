"""Stub engines and config helpers shared by the co-simulation tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import pytest
import yaml

from src.cosim.engines import DetectorState, InitResponse, SignalCatalog, TrafficCatalog


class StubTrafficEngine:
    def __init__(
        self,
        detectors: Iterable[str] = ("D1", "D2", "D3"),
        traffic_lights: Optional[Dict[str, int]] = None,
        events: Optional[List[str]] = None,
    ) -> None:
        self._catalog = TrafficCatalog(
            detectors=frozenset(detectors),
            traffic_lights=traffic_lights if traffic_lights is not None else {"CU1": 4},
        )
        self.events = events if events is not None else []
        self.initialize_calls = 0
        self.close_calls = 0
        self.initialize_failures = 0
        self.steps: List[int] = []
        self.signal_states: List[tuple] = []
        self.detector_states: Dict[str, DetectorState] = {}

    def catalog(self) -> TrafficCatalog:
        return self._catalog

    def initialize(self) -> None:
        self.initialize_calls += 1
        self.events.append("traffic.initialize")
        if self.initialize_failures > 0:
            self.initialize_failures -= 1
            raise RuntimeError("SUMO failed to start")

    def step(self, to_index: int) -> None:
        self.steps.append(to_index)
        self.events.append(f"traffic.step:{to_index}")

    def as_task(self, on_step: Callable[[int], None]) -> Callable[[], int]:
        def run_one_step() -> int:
            target = (self.steps[-1] if self.steps else 0) + 1
            self.step(target)
            on_step(target)
            return target

        return run_one_step

    def read_detector(self, sumo_id: str) -> DetectorState:
        return self.detector_states.get(sumo_id, DetectorState())

    def set_signal_state(self, sumo_id: str, state: str) -> None:
        self.signal_states.append((sumo_id, state))
        self.events.append(f"traffic.signal:{sumo_id}={state}")

    def close(self) -> None:
        self.close_calls += 1


class StubSignalEngine:
    def __init__(
        self,
        control_units: Optional[Dict[str, tuple]] = None,
        detectors: Iterable[str] = ("D1", "D2"),
        reachable: bool = True,
        events: Optional[List[str]] = None,
    ) -> None:
        self._catalog = SignalCatalog(
            control_units=control_units if control_units is not None else {"CU1": ("K1", "K2")},
            detectors=frozenset(detectors),
        )
        self.reachable = reachable
        self.events = events if events is not None else []
        self.loaded_from: Optional[Path] = None
        self.initialize_calls = 0
        self.step_calls: List[int] = []
        self.fail_on: set = set()
        self.states_by_step: Dict[int, Dict[str, Dict[str, str]]] = {}
        self.detectors = None
        self.control_units = None
        self.vehicle_types = None

    def load(self, data_dir: Path) -> None:
        self.loaded_from = Path(data_dir)

    def catalog(self) -> SignalCatalog:
        return self._catalog

    def bind(self, detectors, control_units, vehicle_types=None) -> None:
        self.detectors = detectors
        self.control_units = control_units
        self.vehicle_types = vehicle_types

    def initialize(self) -> InitResponse:
        self.initialize_calls += 1
        self.events.append("signal.initialize")
        if not self.reachable:
            return InitResponse.SIGNAL_SERVER_UNREACHABLE
        return InitResponse.OK

    def step(self, step: int) -> None:
        self.step_calls.append(step)
        self.events.append(f"signal.step:{step}")
        if step in self.fail_on:
            raise RuntimeError(f"signal engine fault at {step}")
        if self.detectors is not None:
            self.detectors.refresh()
        states = self.states_by_step.get(step)
        if states and self.control_units is not None:
            self.control_units.apply(states)


def write_config(
    tmp_path: Path,
    detectors: Iterable = ("D1", "D2"),
    control_units: Optional[list] = None,
    vehicle_types: Optional[dict] = None,
    **overrides,
) -> Path:
    data = {
        "traffic": {"sumo_cfg_path": "scenario/sim.sumocfg", "sumo_port": 8813},
        "signal": {"base_url": "http://localhost:9091", "data_directory": "signal"},
        "detectors": list(detectors) if isinstance(detectors, (list, tuple)) else detectors,
        "control_units": control_units
        if control_units is not None
        else [{"id": "CU1", "sumo_id": "CU1", "signal_groups": {"K1": [0, 1], "K2": [2, 3]}}],
    }
    if vehicle_types is not None:
        data["vehicle_types"] = vehicle_types
    data.update(overrides)
    path = tmp_path / "cosim.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


VTYPES_XML = """<routes>
    <vType id="car" length="5.00"/>
    <vType id="bus" length="12"/>
    <vType id="broken" length="abc"/>
</routes>
"""


@pytest.fixture
def events() -> List[str]:
    return []


@pytest.fixture
def traffic(events) -> StubTrafficEngine:
    return StubTrafficEngine(events=events)


@pytest.fixture
def signal(events) -> StubSignalEngine:
    return StubSignalEngine(events=events)


@pytest.fixture
def make_sim(traffic, signal):
    from src.cosim import CoSimulation

    def _make() -> CoSimulation:
        return CoSimulation(traffic_factory=lambda _cfg: traffic, signal_factory=lambda _cfg: signal)

    return _make
