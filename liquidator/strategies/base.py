# /liquidator/strategies/base.py
# - Defines the AbstractStrategy interface.
# - Enforces a consistent structure for all strategies.

from typing import Iterable

from liquidator.core.state import State


class AbstractStrategy:
    """
    This is the interface every strategy must implement.
    It ensures that all strategies can be driven, dry-run and aborted
    the same way by the entry point.
    """
    def run(self, state: State, targets: Iterable[str]) -> State:
        """
        Main entrypoint for live execution.
        Should return the new, updated State object.
        """
        raise NotImplementedError

    def simulate(self, target: str):
        """Dry run: decide and size without committing anything."""
        raise NotImplementedError

    def abort(self, reason: str):
        """Abort and exit cleanly on error."""
        raise NotImplementedError
