"""Shutdown coordination module for running cleanup actions when the process terminates."""

from .config import ShutdownConfig, ShutdownConfigLoader
from .coordinator import ShutdownCoordinator
from .errors import ActionFailure, ActionTimeoutError, RegistrationError
from .factory import ShutdownCoordinatorFactory
from .state import CoordinatorState, DrainReport, ShutdownAction

__all__ = [
    'ActionFailure',
    'ActionTimeoutError',
    'CoordinatorState',
    'DrainReport',
    'RegistrationError',
    'ShutdownAction',
    'ShutdownConfig',
    'ShutdownConfigLoader',
    'ShutdownCoordinator',
    'ShutdownCoordinatorFactory',
]
