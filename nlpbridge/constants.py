"""Constants shared by the adapter, the engine bridge and the solvers."""

from __future__ import annotations

import math
from typing import Final

# Unbounded side of an interval.
INFINITY: Final[float] = math.inf

# Value given to the bound multipliers z_L / z_U when the engine asks for them.
DEFAULT_BOUND_MULTIPLIER: Final[float] = 1.0

# Reason recorded when the engine needs a starting point and the problem has none.
MISSING_STARTING_POINT: Final[str] = "Ipopt method needs a starting point."

# Warning attached to results accepted at Ipopt's "acceptable" tolerance.
ACCEPTABLE_POINT_WARNING: Final[str] = "Acceptable point"

# Hessian approximation forced on every solver instance.
HESSIAN_APPROXIMATION: Final[str] = "limited-memory"

# Default directory for Ipopt output files when analysis output is enabled.
IPOPT_LOG_DIR: Final[str] = "logs/ipopt"

# Reason recorded when a callback stopped the engine before it reported a status.
CALLBACK_FAILURE: Final[str] = "Evaluation callback reported an error"
