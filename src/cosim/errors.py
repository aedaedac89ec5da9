"""Exception taxonomy for the co-simulation core."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Tuple


class CoSimulationError(Exception):
    """Base class for all co-simulation errors."""


class ConfigError(CoSimulationError, ValueError):
    """Malformed or incomplete configuration."""


class UnresolvedBindingError(CoSimulationError):
    """A configured id is missing from one of the engines."""

    kind = "binding"

    def __init__(self, missing: Iterable[Tuple[str, str]]) -> None:
        self.missing: List[Tuple[str, str]] = list(missing)
        details = ", ".join(f"{item_id} ({where})" for item_id, where in self.missing)
        super().__init__(f"Unresolved {self.kind} ids: {details}")


class UnresolvedDetectorError(UnresolvedBindingError):
    kind = "detector"


class UnresolvedControlUnitError(UnresolvedBindingError):
    kind = "control unit"


class SimulationStateError(CoSimulationError, RuntimeError):
    """Operation invoked in a state that does not allow it."""


class SignalEngineError(CoSimulationError):
    """Failure reported by, or while talking to, the signal engine."""


class SignalServerUnreachableError(SignalEngineError):
    """The signal service could not be reached (connection refused or timed out)."""


ListenerFailure = Tuple[Any, BaseException]


class StepExecutionError(CoSimulationError):
    """A simulation step failed on the engine side.

    Raised after all listeners have been notified; ``listener_failures`` holds
    any listener errors collected for the same step.
    """

    def __init__(
        self,
        step: int,
        cause: Optional[BaseException] = None,
        listener_failures: Optional[List[ListenerFailure]] = None,
    ) -> None:
        self.step = step
        self.cause = cause
        self.listener_failures: List[ListenerFailure] = list(listener_failures or [])
        super().__init__(self._describe())

    def _describe(self) -> str:
        msg = f"Step {self.step} failed: {self.cause!r}"
        if self.listener_failures:
            msg += f" ({len(self.listener_failures)} listener(s) also failed)"
        return msg


class ListenerError(StepExecutionError):
    """One or more step listeners failed; the engines stepped fine."""

    def __init__(self, step: int, failures: List[ListenerFailure]) -> None:
        super().__init__(step, cause=None, listener_failures=failures)

    @property
    def failures(self) -> List[ListenerFailure]:
        return self.listener_failures

    def _describe(self) -> str:
        names = ", ".join(repr(exc) for _, exc in self.listener_failures)
        return f"{len(self.listener_failures)} listener(s) failed at step {self.step}: {names}"
