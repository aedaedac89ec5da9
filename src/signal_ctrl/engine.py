"""Signal engine adapter backed by the RESTful signal-control service.

Each step reads the bound detectors from SUMO, sends them to the service,
and applies the signal-group states it answers with through the control-unit
bridge, so SUMO already shows the new heads when listeners are notified.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional
import logging

from src.cosim.engines import DetectorState, InitResponse, SignalCatalog
from src.cosim.errors import SignalEngineError, SignalServerUnreachableError

from .model import load_signal_model
from .rest_client import SignalServiceClient

if TYPE_CHECKING:
    from src.cosim.config import SignalSettings
    from src.cosim.control_units import ControlUnitBridge
    from src.cosim.detectors import DetectorBridge
    from src.cosim.vehicle_types import VehicleTypeRegistry

LOG = logging.getLogger(__name__)


class RestSignalEngine:
    def __init__(self, client: SignalServiceClient) -> None:
        self.client = client
        self.data_dir: Optional[Path] = None
        self._catalog: Optional[SignalCatalog] = None
        self._detectors: Optional["DetectorBridge"] = None
        self._control_units: Optional["ControlUnitBridge"] = None
        self._vehicle_types: Optional["VehicleTypeRegistry"] = None
        self.last_step: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: "SignalSettings") -> "RestSignalEngine":
        return cls(SignalServiceClient(settings.base_url, timeout_sec=settings.timeout_sec))

    def load(self, data_dir: Path) -> None:
        self._catalog = load_signal_model(data_dir)
        self.data_dir = Path(data_dir)
        LOG.info(
            "Signal model from %s: %d control units, %d detectors",
            data_dir,
            len(self._catalog.control_units),
            len(self._catalog.detectors),
        )

    def catalog(self) -> SignalCatalog:
        if self._catalog is None:
            raise SignalEngineError("Signal model not loaded")
        return self._catalog

    def bind(
        self,
        detectors: "DetectorBridge",
        control_units: "ControlUnitBridge",
        vehicle_types: Optional["VehicleTypeRegistry"] = None,
    ) -> None:
        self._detectors = detectors
        self._control_units = control_units
        self._vehicle_types = vehicle_types

    def initialize(self) -> InitResponse:
        if not self.client.ping():
            return InitResponse.SIGNAL_SERVER_UNREACHABLE
        control_units = self._control_units.signal_ids() if self._control_units else []
        detectors = [b.signal_id for b in self._detectors.bindings()] if self._detectors else []
        try:
            self.client.init_simulation(control_units, detectors)
        except SignalServerUnreachableError as exc:
            LOG.warning("Signal service dropped during init: %s", exc)
            return InitResponse.SIGNAL_SERVER_UNREACHABLE
        self.last_step = None
        return InitResponse.OK

    def _vehicle_payload(self, state: DetectorState) -> List[Dict[str, Any]]:
        vehicles = []
        for type_id in state.vehicle_types:
            vtype = self._vehicle_types.get(type_id) if self._vehicle_types else None
            vehicles.append({"type": type_id, "length": vtype.length if vtype else None})
        return vehicles

    def _detector_payload(self) -> Dict[str, Dict[str, Any]]:
        if self._detectors is None:
            return {}
        self._detectors.refresh()
        payload = {}
        for binding in self._detectors.bindings():
            payload[binding.signal_id] = {
                "occupied": binding.state.occupied,
                "vehicle_count": binding.state.vehicle_count,
                "vehicles": self._vehicle_payload(binding.state),
            }
        return payload

    def step(self, step: int) -> None:
        response = self.client.step(step, self._detector_payload())
        states = response.get("control_units") or {}
        if not isinstance(states, dict):
            raise SignalEngineError(f"Step {step}: 'control_units' must be an object")
        if self._control_units is not None:
            self._control_units.apply(states)
        self.last_step = step
        LOG.debug("Signal step %d applied %d control unit states", step, len(states))
