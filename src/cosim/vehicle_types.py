"""Vehicle type table shared by both engines.

Types are read from ``<vType id=... length=...>`` elements of a SUMO XML file
(routes or additional). Loading is best-effort per entry: malformed entries are
skipped and reported back to the caller instead of aborting the whole load.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import logging
import xml.etree.ElementTree as ET

from .errors import ConfigError

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class VehicleType:
    id: str
    length: int


@dataclass(frozen=True)
class EntryFailure:
    index: int
    entry_id: Optional[str]
    reason: str


@dataclass
class VehicleTypeLoadReport:
    """Outcome of a registry load: what was loaded and what was skipped."""

    source: Path
    loaded: List[str] = field(default_factory=list)
    failures: List[EntryFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _parse_length(raw: Optional[str]) -> int:
    if raw is None:
        raise ValueError("missing 'length' attribute")
    value = float(raw)
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"length is not finite: {raw!r}")
    if value < 0:
        raise ValueError(f"length must be >= 0, got {raw!r}")
    # Half-up rounding; SUMO lengths are decimals, the table holds whole meters.
    return int(value + 0.5)


class VehicleTypeRegistry:
    """Read-only lookup of vehicle types after :meth:`load`."""

    def __init__(self) -> None:
        self._types: Dict[str, VehicleType] = {}

    def load(self, source: str | Path) -> VehicleTypeLoadReport:
        """Replace the table with the types found in ``source``.

        Raises ``ConfigError`` when the file cannot be read or is not XML; a
        single bad ``vType`` only lands in the returned report.
        """
        path = Path(source)
        try:
            root = ET.parse(path).getroot()
        except OSError as exc:
            raise ConfigError(f"Cannot read vehicle type source {path}: {exc}") from exc
        except ET.ParseError as exc:
            raise ConfigError(f"Vehicle type source {path} is not valid XML: {exc}") from exc

        self._types.clear()
        report = VehicleTypeLoadReport(source=path)
        for idx, node in enumerate(root.iter("vType")):
            type_id = node.get("id")
            try:
                if not type_id:
                    raise ValueError("missing 'id' attribute")
                length = _parse_length(node.get("length"))
            except ValueError as exc:
                LOG.warning("Skipping vType #%d (%s) in %s: %s", idx, type_id, path, exc)
                report.failures.append(EntryFailure(index=idx, entry_id=type_id, reason=str(exc)))
                continue
            if type_id in self._types:
                LOG.debug("vType %s redefined in %s, keeping the last definition", type_id, path)
            self._types[type_id] = VehicleType(id=type_id, length=length)
            report.loaded.append(type_id)

        LOG.info(
            "Loaded %d vehicle types from %s (%d skipped)",
            len(self._types),
            path,
            len(report.failures),
        )
        return report

    def get(self, type_id: str) -> Optional[VehicleType]:
        return self._types.get(type_id)

    def ids(self) -> List[str]:
        return list(self._types)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[VehicleType]:
        return iter(self._types.values())
