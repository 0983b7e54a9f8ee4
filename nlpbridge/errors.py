"""Exception hierarchy for nlpbridge."""

from __future__ import annotations


class NlpBridgeError(Exception):
    """Base class for every error raised by nlpbridge."""


class ProblemDefinitionError(NlpBridgeError, ValueError):
    """Raised when a problem description is inconsistent (sizes, bounds)."""


class UnrecoverableSolverError(NlpBridgeError, AssertionError):
    """Raised when the engine reports a status the adapter never provokes.

    The adapter never asks the engine to stop, so a user-requested stop
    means the callback contract was broken somewhere.
    """

    def __init__(self, status: object):
        super().__init__(f"Unrecoverable solver status: {status}")
        self.status = status


class EngineUnavailableError(NlpBridgeError, RuntimeError):
    """Raised when the requested solver engine cannot be created."""
