"""State and value types shared by the shutdown coordinator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .errors import ActionFailure


class CoordinatorState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"
    DONE = "done"

@dataclass
class ShutdownAction:
    """A cleanup callable registered with the coordinator."""
    name: str
    handler: Callable

    @classmethod
    def from_callable(cls, handler: Callable, name: Optional[str] = None) -> 'ShutdownAction':
        if name is None:
            name = getattr(handler, "__qualname__", None) or repr(handler)
        return cls(name=name, handler=handler)

@dataclass
class DrainReport:
    """Outcome of a single drain."""
    trigger: str
    executed: List[str] = field(default_factory=list)
    failures: List[ActionFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures
