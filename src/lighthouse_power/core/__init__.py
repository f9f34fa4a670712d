from __future__ import annotations

from .lifecycle import (
    LifecycleBridge,
    RegistrationStore,
    build_manifest,
    default_appconfig_path,
    registration_store,
)
from .orchestrator import PowerOrchestrator
from .simulator import SimulatedStation, SimulatedTransport
from .transition import BackoffPolicy, DeviceTransition, InvalidTransition, TransitionState
from .transport import BleakTransport, Session, Transport, matches_base_station

__all__ = [
    "BackoffPolicy",
    "BleakTransport",
    "DeviceTransition",
    "InvalidTransition",
    "LifecycleBridge",
    "PowerOrchestrator",
    "RegistrationStore",
    "Session",
    "SimulatedStation",
    "SimulatedTransport",
    "TransitionState",
    "Transport",
    "build_manifest",
    "default_appconfig_path",
    "matches_base_station",
    "registration_store",
]
