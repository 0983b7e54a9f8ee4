"""Drive a :class:`~nlpbridge.adapter.Tnlp` with CasADi's bundled Ipopt.

CasADi does not expose Ipopt's TNLP class, so the bridge wraps the adapter's
callbacks into ``casadi.Callback`` objects: one for the objective, one for
the stacked constraints, each with a Jacobian callback declaring the frozen
sparsity pattern. ``nlpsol("ipopt")`` then runs on the resulting graph.

Scaling is applied as a change of variables, ``xs = sx * x`` and
``gs = sg * g``; the solution and the multipliers are mapped back before
``finalize_solution``.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Final

import casadi as ca
import numpy as np

from nlpbridge.adapter import SolverReturn, Tnlp
from nlpbridge.engine.base import SolverEngine
from nlpbridge.engine.ipopt_options import IpoptOptions, build_casadi_options
from nlpbridge.errors import EngineUnavailableError
from nlpbridge.logging import get_logger
from nlpbridge.problem import Linearity

log = get_logger(__name__)

NLPSOL_OUTPUT_NAMES: tuple[str, ...] = tuple(ca.nlpsol_out())

_IPOPT_AVAILABLE: bool | None = None

RETURN_STATUS: Final[dict[str, SolverReturn]] = {
    "Solve_Succeeded": SolverReturn.SUCCESS,
    "Solved_To_Acceptable_Level": SolverReturn.STOP_AT_ACCEPTABLE_POINT,
    "Infeasible_Problem_Detected": SolverReturn.LOCAL_INFEASIBILITY,
    "Search_Direction_Becomes_Too_Small": SolverReturn.STOP_AT_TINY_STEP,
    "Diverging_Iterates": SolverReturn.DIVERGING_ITERATES,
    "User_Requested_Stop": SolverReturn.USER_REQUESTED_STOP,
    "Feasible_Point_Found": SolverReturn.FEASIBLE_POINT_FOUND,
    "Maximum_Iterations_Exceeded": SolverReturn.MAXITER_EXCEEDED,
    "Restoration_Failed": SolverReturn.RESTORATION_FAILURE,
    "Error_In_Step_Computation": SolverReturn.ERROR_IN_STEP_COMPUTATION,
    "Maximum_CpuTime_Exceeded": SolverReturn.CPUTIME_EXCEEDED,
    "Maximum_WallTime_Exceeded": SolverReturn.WALLTIME_EXCEEDED,
    "Not_Enough_Degrees_Of_Freedom": SolverReturn.TOO_FEW_DEGREES_OF_FREEDOM,
    "Invalid_Option": SolverReturn.INVALID_OPTION,
    "Invalid_Number_Detected": SolverReturn.INVALID_NUMBER_DETECTED,
    "Insufficient_Memory": SolverReturn.OUT_OF_MEMORY,
    "Internal_Error": SolverReturn.INTERNAL_ERROR,
    "Invalid_Problem_Definition": SolverReturn.INTERNAL_ERROR,
    "Unrecoverable_Exception": SolverReturn.INTERNAL_ERROR,
    "NonIpopt_Exception_Thrown": SolverReturn.INTERNAL_ERROR,
}


def ipopt_available() -> bool:
    """True when this CasADi build ships the Ipopt plugin (cached)."""
    global _IPOPT_AVAILABLE

    if _IPOPT_AVAILABLE is not None:
        return _IPOPT_AVAILABLE
    try:
        _IPOPT_AVAILABLE = bool(ca.has_nlpsol("ipopt"))
    except RuntimeError as exc:
        log.warning("Ipopt availability check failed: %s", exc)
        _IPOPT_AVAILABLE = False
    if not _IPOPT_AVAILABLE:
        log.warning("Ipopt is not available in this CasADi build.")
    return _IPOPT_AVAILABLE


def status_from_casadi(return_status: str) -> SolverReturn:
    status = RETURN_STATUS.get(return_status)
    if status is None:
        log.warning("Unknown Ipopt return status %r", return_status)
        return SolverReturn.UNASSIGNED
    return status


def _flatten(value: Any) -> np.ndarray:
    return np.asarray(value, dtype=float).reshape(-1)


class _CallbackAbort(RuntimeError):
    """Raised inside CasADi to stop the solve from a callback."""


class _BridgeState:
    """State shared by every callback of one run.

    Tracks the previous point (to derive the new-point flag), the first
    exception raised by user code and whether a callback asked to abort.
    """

    def __init__(self, tnlp: Tnlp, n: int, m: int):
        self.tnlp = tnlp
        self.n = n
        self.m = m
        self.last_point: np.ndarray | None = None
        self.error: BaseException | None = None
        self.aborted: str | None = None

    def point(self, x: Any) -> tuple[np.ndarray, bool]:
        """Return *x* as an array and whether it differs from the last point."""
        if self.error is not None or self.aborted is not None:
            raise _CallbackAbort("solve already aborted")
        x = _flatten(x)
        new_x = self.last_point is None or not np.array_equal(x, self.last_point)
        if new_x:
            self.last_point = x.copy()
        return x, new_x

    def check(self, ok: bool, callback: str) -> None:
        if not ok:
            self.aborted = callback
            log.error("Callback %s reported an error, stopping the solve", callback)
            raise _CallbackAbort(f"{callback} returned False")

    def guard(self, func: Callable[..., Any], *args: Any) -> Any:
        """Call *func*, remembering the first exception it raises."""
        try:
            return func(*args)
        except _CallbackAbort:
            raise
        except Exception as exc:
            if self.error is None:
                self.error = exc
            raise _CallbackAbort(f"{type(exc).__name__}: {exc}") from exc

    @property
    def stopped(self) -> bool:
        return self.error is not None or self.aborted is not None


class _ObjectiveJacobian(ca.Callback):
    def __init__(self, name: str, state: _BridgeState, opts: dict | None = None):
        self._state = state
        ca.Callback.__init__(self)
        self.construct(name, opts or {})

    def get_n_in(self) -> int:
        return 2

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, idx: int) -> ca.Sparsity:
        if idx == 0:
            return ca.Sparsity.dense(self._state.n, 1)
        return ca.Sparsity(1, 1)

    def get_sparsity_out(self, idx: int) -> ca.Sparsity:
        return ca.Sparsity.dense(1, self._state.n)

    def eval(self, args: list[Any]) -> list[Any]:
        return self._state.guard(self._eval, args)

    def _eval(self, args: list[Any]) -> list[Any]:
        x, new_x = self._state.point(args[0])
        grad = np.zeros(self._state.n)
        self._state.check(
            self._state.tnlp.eval_grad_f(self._state.n, x, new_x, grad), "eval_grad_f"
        )
        return [ca.DM(grad).T]


class _ObjectiveCallback(ca.Callback):
    def __init__(self, state: _BridgeState):
        self._state = state
        self._jac: _ObjectiveJacobian | None = None
        ca.Callback.__init__(self)
        self.construct("nlp_objective", {"enable_fd": False})

    def get_n_in(self) -> int:
        return 1

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, idx: int) -> ca.Sparsity:
        return ca.Sparsity.dense(self._state.n, 1)

    def get_sparsity_out(self, idx: int) -> ca.Sparsity:
        return ca.Sparsity.dense(1, 1)

    def eval(self, args: list[Any]) -> list[Any]:
        return self._state.guard(self._eval, args)

    def _eval(self, args: list[Any]) -> list[Any]:
        x, new_x = self._state.point(args[0])
        value = np.zeros(1)
        self._state.check(self._state.tnlp.eval_f(self._state.n, x, new_x, value), "eval_f")
        return [ca.DM(value[0])]

    def has_jacobian(self) -> bool:
        return True

    def get_jacobian(self, name: str, inames, onames, opts) -> ca.Function:
        # Keep a reference; CasADi does not own Python callbacks.
        self._jac = _ObjectiveJacobian(name, self._state, opts)
        return self._jac


class _ConstraintJacobian(ca.Callback):
    """Constraint Jacobian with the frozen pattern as output sparsity."""

    def __init__(
        self,
        name: str,
        state: _BridgeState,
        rows: np.ndarray,
        cols: np.ndarray,
        opts: dict | None = None,
    ):
        self._state = state
        self._nnz = int(rows.size)
        # CasADi stores column-compressed; reorder the engine's entries once
        self._order = np.lexsort((rows, cols))
        counts = np.bincount(cols[self._order], minlength=state.n)
        colind = np.concatenate([[0], np.cumsum(counts)]).astype(int)
        self._sparsity = ca.Sparsity(
            state.m, state.n, colind.tolist(), rows[self._order].astype(int).tolist()
        )
        ca.Callback.__init__(self)
        self.construct(name, opts or {})

    def get_n_in(self) -> int:
        return 2

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, idx: int) -> ca.Sparsity:
        if idx == 0:
            return ca.Sparsity.dense(self._state.n, 1)
        return ca.Sparsity(self._state.m, 1)

    def get_sparsity_out(self, idx: int) -> ca.Sparsity:
        return self._sparsity

    def eval(self, args: list[Any]) -> list[Any]:
        return self._state.guard(self._eval, args)

    def _eval(self, args: list[Any]) -> list[Any]:
        state = self._state
        x, new_x = state.point(args[0])
        values = np.zeros(self._nnz)
        state.check(
            state.tnlp.eval_jac_g(state.n, x, new_x, state.m, self._nnz, None, None, values),
            "eval_jac_g",
        )
        if self._nnz == 0:
            return [ca.DM(self._sparsity)]
        return [ca.DM(self._sparsity, ca.DM(values[self._order]))]


class _ConstraintCallback(ca.Callback):
    def __init__(self, state: _BridgeState, rows: np.ndarray, cols: np.ndarray):
        self._state = state
        self._rows = rows
        self._cols = cols
        self._jac: _ConstraintJacobian | None = None
        ca.Callback.__init__(self)
        self.construct("nlp_constraints", {"enable_fd": False})

    def get_n_in(self) -> int:
        return 1

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, idx: int) -> ca.Sparsity:
        return ca.Sparsity.dense(self._state.n, 1)

    def get_sparsity_out(self, idx: int) -> ca.Sparsity:
        return ca.Sparsity.dense(self._state.m, 1)

    def eval(self, args: list[Any]) -> list[Any]:
        return self._state.guard(self._eval, args)

    def _eval(self, args: list[Any]) -> list[Any]:
        state = self._state
        x, new_x = state.point(args[0])
        g = np.zeros(state.m)
        state.check(state.tnlp.eval_g(state.n, x, new_x, state.m, g), "eval_g")
        return [ca.DM(g)]

    def has_jacobian(self) -> bool:
        return True

    def get_jacobian(self, name: str, inames, onames, opts) -> ca.Function:
        self._jac = _ConstraintJacobian(name, self._state, self._rows, self._cols, opts)
        return self._jac


class IterationCallback(ca.Callback):
    """Forward Ipopt iterates from CasADi's ``iteration_callback`` hook.

    CasADi passes the current (scaled) iterate; the primal infeasibility is
    measured against the scaled bounds and the step norm against the
    previous iterate. Returning 1 asks Ipopt to stop, which only happens
    once a callback has already failed.
    """

    def __init__(
        self,
        state: _BridgeState,
        lbg: np.ndarray,
        ubg: np.ndarray,
        n_params: int = 0,
    ) -> None:
        self._state = state
        self._lbg = lbg
        self._ubg = ubg
        self._prev_x: np.ndarray | None = None
        self._iteration = 0
        self._names = NLPSOL_OUTPUT_NAMES
        self._sparsity_lookup = {
            "x": ca.Sparsity.dense(state.n, 1),
            "f": ca.Sparsity.dense(1, 1),
            "g": ca.Sparsity.dense(state.m, 1),
            "lam_x": ca.Sparsity.dense(state.n, 1),
            "lam_g": ca.Sparsity.dense(state.m, 1),
            "lam_p": ca.Sparsity.dense(n_params, 1),
        }
        ca.Callback.__init__(self)
        self.construct("nlp_iteration", {"enable_fd": False})

    def get_n_in(self) -> int:
        return len(self._names)

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, idx: int) -> ca.Sparsity:
        return self._sparsity_lookup.get(self._names[idx], ca.Sparsity.dense(0, 1))

    def get_sparsity_out(self, idx: int) -> ca.Sparsity:
        return ca.Sparsity.dense(1, 1)

    def eval(self, args: list[Any]) -> list[int]:
        if self._state.stopped:
            return [1]
        data = dict(zip(self._names, args))
        x = _flatten(data["x"])
        g = _flatten(data["g"])
        objective = float(_flatten(data["f"])[0])
        inf_pr = self._violation(g)
        d_norm = self._step_norm(x)
        try:
            keep_going = self._state.tnlp.intermediate_callback(
                0,
                self._iteration,
                objective,
                inf_pr,
                float("nan"),
                float("nan"),
                d_norm,
                float("nan"),
                float("nan"),
                float("nan"),
                0,
            )
        except Exception as exc:
            self._state.error = exc
            return [1]
        self._iteration += 1
        if not keep_going:
            self._state.aborted = "intermediate_callback"
            return [1]
        return [0]

    def _violation(self, g: np.ndarray) -> float:
        if g.size == 0:
            return 0.0
        violation = np.maximum(np.maximum(0.0, self._lbg - g), np.maximum(0.0, g - self._ubg))
        return float(violation.max())

    def _step_norm(self, x: np.ndarray) -> float:
        if self._prev_x is None:
            self._prev_x = x.copy()
            return 0.0
        delta = float(np.max(np.abs(x - self._prev_x))) if x.size else 0.0
        self._prev_x = x.copy()
        return delta


class CasadiIpoptEngine(SolverEngine):
    """Ipopt through ``casadi.nlpsol``, limited-memory Hessian only."""

    name = "ipopt"

    def __init__(self, options: IpoptOptions | None = None):
        self.options = options or IpoptOptions()
        self._parameters = build_casadi_options(self.options)

    @property
    def parameters(self) -> dict[str, Any]:
        return dict(self._parameters)

    def run(self, tnlp: Tnlp) -> None:
        if not ipopt_available():
            raise EngineUnavailableError("CasADi was built without the Ipopt plugin")

        info = tnlp.get_nlp_info()
        n, m = info.n, info.m
        x_l, x_u = np.zeros(n), np.zeros(n)
        g_l, g_u = np.zeros(m), np.zeros(m)
        if not tnlp.get_bounds_info(n, x_l, x_u, m, g_l, g_u):
            log.error("Bounds query failed, Ipopt is not started")
            return

        sx, sg = np.ones(n), np.ones(m)
        use_x, use_g = tnlp.get_scaling_parameters(n, sx, m, sg)
        if not use_x:
            sx[:] = 1.0
        if not use_g:
            sg[:] = 1.0

        const_types = [Linearity.NONLINEAR] * m
        tnlp.get_function_linearity(m, const_types)
        var_types = [Linearity.NONLINEAR] * n
        tnlp.get_variables_linearity(n, var_types)

        warm = self.options.warm_start_init_point == "yes"
        x0 = np.zeros(n)
        z_l0, z_u0 = np.zeros(n), np.zeros(n)
        lam_g0 = np.zeros(m)
        if not tnlp.get_starting_point(n, True, x0, warm, z_l0, z_u0, m, warm, lam_g0):
            log.info("Starting point query failed, Ipopt is not started")
            return

        rows, cols = np.zeros(info.nnz_jac_g, dtype=np.int64), np.zeros(info.nnz_jac_g, dtype=np.int64)
        if m and not tnlp.eval_jac_g(n, None, True, m, info.nnz_jac_g, rows, cols, None):
            log.error("Jacobian structure query failed, Ipopt is not started")
            return

        state = _BridgeState(tnlp, n, m)
        objective = _ObjectiveCallback(state)
        constraints = _ConstraintCallback(state, rows, cols) if m else None

        xs = ca.MX.sym("x", n)
        x = xs / ca.DM(sx)
        nlp: dict[str, Any] = {"x": xs, "f": objective(x)}
        if constraints is not None:
            nlp["g"] = constraints(x) * ca.DM(sg)

        iteration = IterationCallback(state, g_l * sg, g_u * sg)
        opts = dict(self._parameters)
        opts.update(self._linearity_options(g_l, g_u, const_types))
        opts["iteration_callback"] = iteration
        opts["error_on_fail"] = False
        opts["print_time"] = False

        args: dict[str, Any] = {
            "x0": x0 * sx,
            "lbx": x_l * sx,
            "ubx": x_u * sx,
        }
        if m:
            args["lbg"] = g_l * sg
            args["ubg"] = g_u * sg
        if warm:
            # CasADi carries one signed multiplier per bound pair
            args["lam_x0"] = (z_u0 - z_l0) / sx
            if m:
                args["lam_g0"] = lam_g0 / sg

        log.info("Starting Ipopt: n=%d m=%d nnz_jac_g=%d", n, m, info.nnz_jac_g)
        solver = ca.nlpsol("nlpbridge", "ipopt", nlp, opts)
        t0 = time.time()
        try:
            sol = solver(**args)
        except RuntimeError as exc:
            if state.error is not None:
                raise state.error from exc
            if state.aborted is not None:
                return
            raise
        elapsed = time.time() - t0

        if state.error is not None:
            raise state.error
        if state.aborted is not None:
            log.error("Ipopt stopped after %s failed", state.aborted)
            return

        stats = solver.stats()
        return_status = str(stats.get("return_status", ""))
        status = status_from_casadi(return_status)
        log.info(
            "Ipopt finished: %s (%s) after %s iterations in %.3fs",
            return_status,
            status.name,
            stats.get("iter_count", "?"),
            elapsed,
        )

        x_opt = _flatten(sol["x"]) / sx
        g_opt = _flatten(sol["g"]) / sg if m else np.zeros(0)
        lam_g = _flatten(sol["lam_g"]) * sg if m else np.zeros(0)
        lam_x = _flatten(sol["lam_x"]) * sx
        tnlp.finalize_solution(
            status,
            n,
            x_opt,
            np.maximum(0.0, -lam_x),
            np.maximum(0.0, lam_x),
            m,
            g_opt,
            lam_g,
            float(_flatten(sol["f"])[0]),
        )

    @staticmethod
    def _linearity_options(
        g_l: np.ndarray, g_u: np.ndarray, const_types: list[Linearity]
    ) -> dict[str, str]:
        """``jac_c_constant`` / ``jac_d_constant`` when every row of a kind is linear."""
        equality = g_l == g_u
        linear = np.array([t is Linearity.LINEAR for t in const_types], dtype=bool)
        opts: dict[str, str] = {}
        if equality.any() and linear[equality].all():
            opts["ipopt.jac_c_constant"] = "yes"
        if (~equality).any() and linear[~equality].all():
            opts["ipopt.jac_d_constant"] = "yes"
        return opts
