"""HTTP client for the signal-control service."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional
import logging

import requests

from src.cosim.errors import SignalEngineError, SignalServerUnreachableError

LOG = logging.getLogger(__name__)


class SignalServiceClient:
    """Thin JSON wrapper around the service's status/init/step endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def ping(self) -> bool:
        """Return True if the service answers its status endpoint."""
        url = self._url("status")
        try:
            resp = self.session.get(url, timeout=self.timeout_sec)
            resp.raise_for_status()
        except requests.RequestException as exc:
            LOG.warning("Signal service at %s not reachable: %s", self.base_url, exc)
            return False
        return True

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self._url(path)
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout_sec)
            resp.raise_for_status()
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise SignalServerUnreachableError(f"POST {url} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise SignalEngineError(f"POST {url} failed: {exc}") from exc
        if not resp.content:
            return {}
        try:
            body = resp.json()
        except ValueError as exc:
            raise SignalEngineError(f"POST {url} returned invalid JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise SignalEngineError(f"POST {url} returned {type(body).__name__}, expected an object")
        return body

    def init_simulation(self, control_units: Iterable[str], detectors: Iterable[str]) -> Dict[str, Any]:
        return self._post(
            "simulation/init",
            {"control_units": list(control_units), "detectors": list(detectors)},
        )

    def step(self, step: int, detectors: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        return self._post("simulation/step", {"step": int(step), "detectors": detectors})
