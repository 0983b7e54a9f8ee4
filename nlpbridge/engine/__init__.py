"""Engines that drive a :class:`~nlpbridge.adapter.Tnlp`."""

from nlpbridge.engine.base import SolverEngine
from nlpbridge.engine.casadi_ipopt import (
    CasadiIpoptEngine,
    IterationCallback,
    ipopt_available,
    status_from_casadi,
)
from nlpbridge.engine.ipopt_options import (
    IpoptOptions,
    adapter_options_from_dict,
    build_casadi_options,
    load_options,
    options_from_dict,
)

__all__ = [
    "CasadiIpoptEngine",
    "IpoptOptions",
    "IterationCallback",
    "SolverEngine",
    "adapter_options_from_dict",
    "build_casadi_options",
    "ipopt_available",
    "load_options",
    "options_from_dict",
    "status_from_casadi",
]
