"""Control unit bindings: signal-group states from the signal engine are
translated into SUMO red/yellow/green strings and pushed to the traffic engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple
import logging

from .engines import SignalCatalog, SignalStates, TrafficEngine
from .errors import SignalEngineError, UnresolvedControlUnitError

if TYPE_CHECKING:
    from .config import SimulationConfig

LOG = logging.getLogger(__name__)

SUMO_SIGNAL_CHARS: Dict[str, str] = {
    "green": "G",
    "amber": "y",
    "yellow": "y",
    "red": "r",
    "red_amber": "u",
    "off": "O",
    "flashing": "o",
}
UNMAPPED_LINK = "O"


def to_sumo_char(state: str) -> str:
    try:
        return SUMO_SIGNAL_CHARS[state.lower()]
    except (KeyError, AttributeError):
        raise SignalEngineError(f"Unknown signal state: {state!r}") from None


@dataclass
class ControlUnitBinding:
    id: str
    sumo_id: str
    signal_id: str
    link_count: int
    signal_groups: Mapping[str, Tuple[int, ...]]
    state: Dict[str, str] = field(default_factory=dict)
    sumo_state: str = ""

    def render(self, group_states: Mapping[str, str]) -> str:
        """Build the full SUMO state string for this traffic light.

        Groups without an update keep their last state; links no group maps
        to stay ``O``.
        """
        merged = dict(self.state)
        merged.update(group_states)
        chars = [UNMAPPED_LINK] * self.link_count
        for group, links in self.signal_groups.items():
            if group not in merged:
                continue
            char = to_sumo_char(merged[group])
            for link in links:
                chars[link] = char
        return "".join(chars)


class ControlUnitBridge:
    """Resolves configured control units and applies signal-head states."""

    def __init__(self) -> None:
        self._bindings: Dict[str, ControlUnitBinding] = {}
        self._by_signal_id: Dict[str, str] = {}
        self._traffic: Optional[TrafficEngine] = None

    def load(
        self,
        config: "SimulationConfig",
        signal_catalog: SignalCatalog,
        traffic: TrafficEngine,
    ) -> None:
        """Bind every configured control unit, or none of them."""
        traffic_catalog = traffic.catalog()
        bindings: Dict[str, ControlUnitBinding] = {}
        missing: List[Tuple[str, str]] = []
        for spec in config.control_units:
            groups = signal_catalog.control_units.get(spec.signal_id)
            if groups is None:
                missing.append((spec.id, "signal engine"))
            else:
                for group in spec.signal_groups:
                    if group not in groups:
                        missing.append((f"{spec.id}/{group}", "signal engine"))

            link_count = traffic_catalog.traffic_lights.get(spec.sumo_id)
            if link_count is None:
                missing.append((spec.id, "traffic engine"))
                continue
            for group, links in spec.signal_groups.items():
                bad = [i for i in links if i >= link_count]
                if bad:
                    missing.append((f"{spec.id}/{group} links {bad}", "traffic engine"))

            bindings[spec.id] = ControlUnitBinding(
                id=spec.id,
                sumo_id=spec.sumo_id,
                signal_id=spec.signal_id,
                link_count=link_count,
                signal_groups=dict(spec.signal_groups),
            )

        if missing:
            self._bindings = {}
            self._by_signal_id = {}
            self._traffic = None
            raise UnresolvedControlUnitError(missing)

        self._bindings = bindings
        self._by_signal_id = {b.signal_id: b.id for b in bindings.values()}
        self._traffic = traffic
        LOG.info("Bound %d control units", len(bindings))

    def apply(self, states: SignalStates) -> None:
        """Push signal-engine states (keyed by signal-engine id) into SUMO.

        States for control units that are not bound are ignored. The whole
        payload is validated and rendered before anything is sent to SUMO.
        """
        if not isinstance(states, Mapping):
            raise SignalEngineError(f"Signal states must be a mapping, got {type(states).__name__}")

        rendered: List[Tuple[ControlUnitBinding, Mapping[str, str], str]] = []
        for signal_id, group_states in states.items():
            cu_id = self._by_signal_id.get(signal_id)
            if cu_id is None:
                LOG.debug("Ignoring state for unbound control unit %s", signal_id)
                continue
            if not isinstance(group_states, Mapping):
                raise SignalEngineError(
                    f"States for control unit {signal_id} must map signal groups to states, "
                    f"got {type(group_states).__name__}"
                )
            binding = self._bindings[cu_id]
            rendered.append((binding, group_states, binding.render(group_states)))

        for binding, group_states, sumo_state in rendered:
            self._traffic.set_signal_state(binding.sumo_id, sumo_state)
            binding.state.update(group_states)
            binding.sumo_state = sumo_state

    def get(self, control_unit_id: str) -> Dict[str, str]:
        return dict(self._bindings[control_unit_id].state)

    def binding(self, control_unit_id: str) -> ControlUnitBinding:
        return self._bindings[control_unit_id]

    def ids(self) -> List[str]:
        return list(self._bindings)

    def signal_ids(self) -> List[str]:
        return [b.signal_id for b in self._bindings.values()]

    def __contains__(self, control_unit_id: object) -> bool:
        return control_unit_id in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)
