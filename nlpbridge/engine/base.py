"""Contract between a solver front-end and the engine that drives a Tnlp."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from nlpbridge.adapter import Tnlp


class SolverEngine(ABC):
    """Run an NLP algorithm against the callbacks of a :class:`Tnlp`.

    An engine queries the structure once, evaluates repeatedly and finishes
    with ``finalize_solution``. When the starting point query or a callback
    fails it stops without finalizing; the outcome then stays whatever the
    Tnlp recorded (possibly nothing).
    """

    name: ClassVar[str] = ""

    @abstractmethod
    def run(self, tnlp: Tnlp) -> None: ...

    @property
    def parameters(self) -> dict[str, object]:
        """Engine parameters in effect, keyed as the engine names them."""
        return {}
