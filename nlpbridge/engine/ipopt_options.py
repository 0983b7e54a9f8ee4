"""Ipopt option handling.

:class:`IpoptOptions` holds the Ipopt parameters a solver is created with and
:func:`build_casadi_options` turns them into the ``ipopt.*`` dictionary that
CasADi's ``nlpsol`` expects. Options can also be read from a YAML file with an
``ipopt:`` section (Ipopt parameters) and an ``adapter:`` section
(:class:`~nlpbridge.adapter.AdapterOptions`).
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Final, Mapping

import yaml

from nlpbridge.adapter.options import AdapterOptions
from nlpbridge.constants import HESSIAN_APPROXIMATION, IPOPT_LOG_DIR
from nlpbridge.logging import get_logger

log = get_logger(__name__)

PRINT_LEVEL_ENV: Final[str] = "NLPBRIDGE_IPOPT_PRINT_LEVEL"


@dataclass
class IpoptOptions:
    """Ipopt solver options."""

    # Termination
    max_iter: int = 3000
    max_cpu_time: float = 1e6
    tol: float = 1e-8
    acceptable_tol: float = 1e-6
    acceptable_iter: int = 15

    # Barrier parameter
    mu_strategy: str = "adaptive"  # "monotone", "adaptive"
    mu_init: float = 0.1

    # Output
    print_level: int = 0  # 0=silent, 5=iteration summary
    output_file: str | None = None
    enable_analysis: bool = False  # write a timestamped log under IPOPT_LOG_DIR

    # Quasi-Newton Hessian; exact Hessians are not available
    hessian_approximation: str = HESSIAN_APPROXIMATION
    limited_memory_max_history: int = 6

    # Linear solver (MUMPS ships with CasADi)
    linear_solver: str = "mumps"
    linear_solver_options: dict[str, Any] = field(default_factory=dict)

    # Warm start
    warm_start_init_point: str = "no"  # "no", "yes"

    def __post_init__(self) -> None:
        if self.hessian_approximation != HESSIAN_APPROXIMATION:
            raise ValueError(
                f"hessian_approximation={self.hessian_approximation!r} is not supported; "
                f"only {HESSIAN_APPROXIMATION!r} is available"
            )
        if self.warm_start_init_point not in ("yes", "no"):
            raise ValueError("warm_start_init_point must be 'yes' or 'no'")


_DIRECT_MAP: Final = {
    "max_iter": "ipopt.max_iter",
    "max_cpu_time": "ipopt.max_cpu_time",
    "tol": "ipopt.tol",
    "acceptable_tol": "ipopt.acceptable_tol",
    "acceptable_iter": "ipopt.acceptable_iter",
    "mu_strategy": "ipopt.mu_strategy",
    "mu_init": "ipopt.mu_init",
    "print_level": "ipopt.print_level",
    "hessian_approximation": "ipopt.hessian_approximation",
    "limited_memory_max_history": "ipopt.limited_memory_max_history",
    "linear_solver": "ipopt.linear_solver",
    "warm_start_init_point": "ipopt.warm_start_init_point",
}


def build_casadi_options(ipopt_options: IpoptOptions) -> dict[str, Any]:
    """Return the ``ipopt.*`` dictionary for *ipopt_options*.

    Fields left at ``None`` are omitted. Entries of ``linear_solver_options``
    are copied verbatim with the ``ipopt.`` prefix. A few robust defaults are
    added when absent. The print level can be overridden through the
    ``NLPBRIDGE_IPOPT_PRINT_LEVEL`` environment variable.
    """
    opts: dict[str, Any] = {}
    data = asdict(ipopt_options)
    for name, key in _DIRECT_MAP.items():
        if data.get(name) is not None:
            opts[key] = data[name]

    if ipopt_options.output_file:
        opts["ipopt.output_file"] = ipopt_options.output_file
    elif ipopt_options.enable_analysis:
        log_dir = Path(IPOPT_LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        opts["ipopt.output_file"] = str(log_dir / f"ipopt_{ts}.log")

    for key, value in (ipopt_options.linear_solver_options or {}).items():
        opts[f"ipopt.{key}"] = value

    opts.setdefault("ipopt.nlp_scaling_method", "gradient-based")
    opts.setdefault("ipopt.nlp_scaling_max_gradient", 100.0)

    env_print_level = os.getenv(PRINT_LEVEL_ENV)
    if env_print_level:
        try:
            opts["ipopt.print_level"] = max(0, min(12, int(env_print_level)))
            log.info("Overriding Ipopt print_level via %s=%s", PRINT_LEVEL_ENV, env_print_level)
        except ValueError:
            log.warning(
                "Invalid %s=%s (expected integer). Using configured value.",
                PRINT_LEVEL_ENV,
                env_print_level,
            )

    # Suppress the Ipopt banner when nothing else is printed
    if opts.get("ipopt.print_level") == 0:
        opts.setdefault("ipopt.sb", "yes")
    return opts


def _split_known(cls: type, values: Mapping[str, Any], section: str) -> dict[str, Any]:
    known = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        name = key[len("ipopt.") :] if key.startswith("ipopt.") else key
        if name in known:
            kwargs[name] = value
        else:
            log.warning(f"Unknown {section} option: {key}")
    return kwargs


def options_from_dict(values: Mapping[str, Any] | None) -> IpoptOptions:
    """Build :class:`IpoptOptions` from a mapping, ignoring unknown keys.

    Keys may carry the ``ipopt.`` prefix used in CasADi dictionaries.
    """
    return IpoptOptions(**_split_known(IpoptOptions, values or {}, "Ipopt"))


def adapter_options_from_dict(values: Mapping[str, Any] | None) -> AdapterOptions:
    return AdapterOptions(**_split_known(AdapterOptions, values or {}, "adapter"))


def load_options(path: str | Path) -> tuple[IpoptOptions, AdapterOptions]:
    """Read ``ipopt:`` and ``adapter:`` sections from a YAML file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        document = yaml.safe_load(fh) or {}
    if not isinstance(document, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    unknown = set(document) - {"ipopt", "adapter"}
    if unknown:
        log.warning("Ignoring unknown sections in %s: %s", path, ", ".join(sorted(unknown)))
    ipopt_options = options_from_dict(document.get("ipopt"))
    adapter_options = adapter_options_from_dict(document.get("adapter"))
    log.debug("Loaded solver options from %s", path)
    return ipopt_options, adapter_options
