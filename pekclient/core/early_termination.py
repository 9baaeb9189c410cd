"""
Early termination catalog.

Early terminators are named stopping rules evaluated by the server. When a
rule fires it either notifies the client or kills the affected run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pekclient.utils.error_handling import PekEarlyTerminationError


class EarlyTerminationAction(str, Enum):
    """Actions an early terminator can trigger."""

    NOTIFY = "notify"
    KILL = "kill"


@dataclass(frozen=True)
class EarlyTerminator:
    """
    Immutable early termination rule.

    ``action`` may be None to declare a placeholder rule that does nothing.
    """

    name: str
    threshold: Optional[float] = None
    action: Optional[EarlyTerminationAction] = None

    def __post_init__(self):
        if self.action is None:
            return
        try:
            action = EarlyTerminationAction(self.action)
        except ValueError:
            allowed = ", ".join(a.value for a in EarlyTerminationAction)
            raise PekEarlyTerminationError(
                f"Invalid action value: {self.action}. Allowed values are [{allowed}].",
                details={"name": self.name, "action": self.action},
            ) from None
        object.__setattr__(self, "action", action)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation sent with the task arguments."""
        return {
            "name": self.name,
            "threshold": self.threshold,
            "action": self.action.value if self.action is not None else None,
        }


@dataclass(frozen=True)
class EarlyTerminatorNotifier(EarlyTerminator):
    """Rule that notifies the client when it fires."""

    def __init__(self, name: str, threshold: Optional[float] = None):
        super().__init__(name, threshold, EarlyTerminationAction.NOTIFY)


@dataclass(frozen=True)
class EarlyTerminatorKiller(EarlyTerminator):
    """Rule that kills the run when it fires."""

    def __init__(self, name: str, threshold: Optional[float] = None):
        super().__init__(name, threshold, EarlyTerminationAction.KILL)


def is_early_terminator(value: Any) -> bool:
    """Return True if ``value`` can be used in a task's ``ets`` list."""
    return isinstance(value, EarlyTerminator)


class DefaultEarlyTerminator:
    """Early terminators shipped with the client. Shared and read-only."""

    FAST_NOTIFY = EarlyTerminatorNotifier("fast-notify")
    SLOW_NOTIFY = EarlyTerminatorNotifier("slow-notify")

    FAST_KILL = EarlyTerminatorKiller("fast-kill")
    SLOW_KILL = EarlyTerminatorKiller("slow-kill")

    @classmethod
    def all(cls):
        return [cls.FAST_NOTIFY, cls.SLOW_NOTIFY, cls.FAST_KILL, cls.SLOW_KILL]

    @classmethod
    def by_name(cls, name: str) -> EarlyTerminator:
        for terminator in cls.all():
            if terminator.name == name:
                return terminator
        raise PekEarlyTerminationError(f"Unknown early terminator '{name}'.")
