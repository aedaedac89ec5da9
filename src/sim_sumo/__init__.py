"""SUMO/TraCI integration for the co-simulation.

This package provides:
- TraCIConnection: TraCI connection management
- TraCITrafficEngine: traffic engine adapter driven by the orchestrator
- load_scenario / load_traffic_catalog: static scenario model read from the
  .sumocfg and the files it references

Usage:
    from src.sim_sumo import TraCITrafficEngine, TraCIConfig
"""

from .scenario import ScenarioModel, load_scenario, load_traffic_catalog, read_sumocfg
from .traci_adapter import (
    TraCIConfig,
    TraCIConnection,
    TraCITrafficEngine,
    TRACI_AVAILABLE,
)

__all__ = [
    "TraCIConfig",
    "TraCIConnection",
    "TraCITrafficEngine",
    "TRACI_AVAILABLE",
    "ScenarioModel",
    "load_scenario",
    "load_traffic_catalog",
    "read_sumocfg",
]
