"""Adapter-side configuration, fixed once when a solver is constructed."""

from __future__ import annotations

from dataclasses import dataclass

from nlpbridge.constants import DEFAULT_BOUND_MULTIPLIER

STORAGE_ORDERS = ("column", "row")


@dataclass
class AdapterOptions:
    """Options consumed by the adapter itself, not forwarded to Ipopt."""

    # Fail before the first evaluation when the problem has no starting point
    require_starting_point: bool = True

    # Initial z_L / z_U when the engine asks for bound multipliers
    bound_multiplier_init: float = DEFAULT_BOUND_MULTIPLIER

    # Order of the sparse Jacobian entries: "column" (column-major) or "row"
    storage_order: str = "column"

    # Finite-difference check of every analytic derivative evaluation
    check_derivatives: bool = False
    derivative_tolerance: float = 1e-4
    finite_difference_step: float = 1e-6

    def __post_init__(self) -> None:
        if self.storage_order not in STORAGE_ORDERS:
            raise ValueError(
                f"storage_order must be one of {STORAGE_ORDERS}, got {self.storage_order!r}"
            )
        if self.finite_difference_step <= 0:
            raise ValueError("finite_difference_step must be positive")
