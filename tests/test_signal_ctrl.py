"""Tests for the REST signal engine adapter (HTTP session mocked)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from conftest import StubTrafficEngine, write_config
from src.cosim import (
    ConfigError,
    ControlUnitBridge,
    DetectorBridge,
    DetectorState,
    InitResponse,
    SignalEngineError,
    SignalServerUnreachableError,
    VehicleTypeRegistry,
    load_simulation_config,
)
from src.signal_ctrl import RestSignalEngine, SignalServiceClient, load_signal_model

SIGNAL_MODEL = """\
control_units:
  CU1:
    signal_groups: [K1, K2]
    detectors: [D1]
detectors: [D2]
"""


def _response(payload=None, status_error=None):
    resp = MagicMock()
    resp.content = b"{}" if payload is not None else b""
    resp.json.return_value = payload
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    return resp


def _write_model(tmp_path: Path) -> Path:
    data_dir = tmp_path / "signal"
    data_dir.mkdir()
    (data_dir / "signal_model.yaml").write_text(SIGNAL_MODEL, encoding="utf-8")
    return data_dir


class TestSignalModel:
    def test_reads_units_and_detectors(self, tmp_path):
        catalog = load_signal_model(_write_model(tmp_path))
        assert catalog.control_units == {"CU1": ("K1", "K2")}
        assert catalog.detectors == frozenset({"D1", "D2"})

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError):
            load_signal_model(tmp_path / "absent")

    def test_missing_model_file(self, tmp_path):
        (tmp_path / "signal").mkdir()
        with pytest.raises(ConfigError):
            load_signal_model(tmp_path / "signal")


class TestSignalServiceClient:
    def test_ping_ok(self):
        session = MagicMock()
        session.get.return_value = _response({})
        client = SignalServiceClient("http://lisa:9091/api/", timeout_sec=2.0, session=session)

        assert client.ping() is True
        session.get.assert_called_once_with("http://lisa:9091/api/status", timeout=2.0)

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("refused"), requests.Timeout("slow")],
    )
    def test_ping_unreachable(self, error):
        session = MagicMock()
        session.get.side_effect = error
        assert SignalServiceClient("http://lisa:9091", session=session).ping() is False

    def test_ping_http_error_counts_as_unreachable(self):
        session = MagicMock()
        session.get.return_value = _response({}, status_error=requests.HTTPError("503"))
        assert SignalServiceClient("http://lisa:9091", session=session).ping() is False

    def test_step_posts_payload(self):
        session = MagicMock()
        session.post.return_value = _response({"control_units": {"CU1": {"K1": "green"}}})
        client = SignalServiceClient("http://lisa:9091", session=session)

        body = client.step(4, {"D1": {"occupied": True}})

        assert body == {"control_units": {"CU1": {"K1": "green"}}}
        session.post.assert_called_once_with(
            "http://lisa:9091/simulation/step",
            json={"step": 4, "detectors": {"D1": {"occupied": True}}},
            timeout=5.0,
        )

    def test_post_transport_failure_is_unreachable(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("gone")
        with pytest.raises(SignalServerUnreachableError):
            SignalServiceClient("http://lisa:9091", session=session).step(1, {})

    def test_post_http_error_raises_signal_engine_error(self):
        session = MagicMock()
        session.post.return_value = _response({}, status_error=requests.HTTPError("404"))
        with pytest.raises(SignalEngineError) as excinfo:
            SignalServiceClient("http://lisa:9091", session=session).step(1, {})
        assert not isinstance(excinfo.value, SignalServerUnreachableError)

    def test_non_object_body_rejected(self):
        session = MagicMock()
        session.post.return_value = _response(["not", "an", "object"])
        with pytest.raises(SignalEngineError):
            SignalServiceClient("http://lisa:9091", session=session).step(1, {})

    def test_empty_body_is_empty_dict(self):
        session = MagicMock()
        session.post.return_value = _response(None)
        assert SignalServiceClient("http://lisa:9091", session=session).init_simulation([], []) == {}


class TestRestSignalEngine:
    def _engine(self, tmp_path, session):
        data_dir = _write_model(tmp_path)
        config = load_simulation_config(
            write_config(
                tmp_path,
                detectors=["D1", "D2"],
                control_units=[{"id": "CU1", "signal_groups": {"K1": [0], "K2": [1]}}],
            )
        )
        traffic = StubTrafficEngine(detectors=["D1", "D2"], traffic_lights={"CU1": 2})
        engine = RestSignalEngine(SignalServiceClient("http://lisa:9091", session=session))
        engine.load(data_dir)

        detectors = DetectorBridge()
        detectors.load(config, engine.catalog(), traffic)
        control_units = ControlUnitBridge()
        control_units.load(config, engine.catalog(), traffic)

        (tmp_path / "vtypes.xml").write_text('<routes><vType id="car" length="5"/></routes>', encoding="utf-8")
        vehicle_types = VehicleTypeRegistry()
        vehicle_types.load(tmp_path / "vtypes.xml")

        engine.bind(detectors, control_units, vehicle_types)
        return engine, traffic

    def test_catalog_before_load(self):
        engine = RestSignalEngine(SignalServiceClient("http://lisa:9091", session=MagicMock()))
        with pytest.raises(SignalEngineError):
            engine.catalog()

    def test_initialize_unreachable_skips_init_call(self, tmp_path):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        engine, _ = self._engine(tmp_path, session)

        assert engine.initialize() is InitResponse.SIGNAL_SERVER_UNREACHABLE
        session.post.assert_not_called()

    def test_initialize_registers_bound_ids(self, tmp_path):
        session = MagicMock()
        session.get.return_value = _response({})
        session.post.return_value = _response({})
        engine, _ = self._engine(tmp_path, session)

        assert engine.initialize() is InitResponse.OK
        session.post.assert_called_once_with(
            "http://lisa:9091/simulation/init",
            json={"control_units": ["CU1"], "detectors": ["D1", "D2"]},
            timeout=5.0,
        )

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("refused"), requests.Timeout("slow")],
    )
    def test_service_lost_between_status_and_init(self, tmp_path, error):
        session = MagicMock()
        session.get.return_value = _response({})
        session.post.side_effect = error
        engine, _ = self._engine(tmp_path, session)

        assert engine.initialize() is InitResponse.SIGNAL_SERVER_UNREACHABLE

    def test_init_rejected_by_service_raises(self, tmp_path):
        session = MagicMock()
        session.get.return_value = _response({})
        session.post.return_value = _response({}, status_error=requests.HTTPError("500"))
        engine, _ = self._engine(tmp_path, session)

        with pytest.raises(SignalEngineError) as excinfo:
            engine.initialize()
        assert not isinstance(excinfo.value, SignalServerUnreachableError)

    def test_step_sends_detectors_and_applies_states(self, tmp_path):
        session = MagicMock()
        session.post.return_value = _response({"control_units": {"CU1": {"K1": "green", "K2": "red"}}})
        engine, traffic = self._engine(tmp_path, session)
        traffic.detector_states["D1"] = DetectorState(occupied=True, vehicle_count=1, vehicle_types=("car",))

        engine.step(7)

        payload = session.post.call_args.kwargs["json"]
        assert payload["step"] == 7
        assert payload["detectors"]["D1"] == {
            "occupied": True,
            "vehicle_count": 1,
            "vehicles": [{"type": "car", "length": 5}],
        }
        assert payload["detectors"]["D2"]["occupied"] is False
        assert traffic.signal_states == [("CU1", "Gr")]
        assert engine.last_step == 7

    def test_step_rejects_malformed_states(self, tmp_path):
        session = MagicMock()
        session.post.return_value = _response({"control_units": ["CU1"]})
        engine, _ = self._engine(tmp_path, session)
        with pytest.raises(SignalEngineError):
            engine.step(1)
