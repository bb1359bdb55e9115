# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
ode_solve / sde_solve: the public entry points.

Pipeline
--------
    DerivativeFunction.resolve   (f / fname -> tagged function)
        -> build_*_problem       (adapt + validate + ODEProblem/SDEProblem)
        -> SolveInvoker.invoke   (algorithm + options -> solve)
        -> materialize           (sol.t, sol.u -> Solution)

Every failure propagates immediately. A failed solve returns nothing;
there are no partial Solutions and no retries.

Examples
--------
>>> # Return-by-value Python derivative
>>> sol = ode_solve(lambda u, p, t: 1.01 * u, [0.5], (0.0, 1.0))
>>> sol.t[0], sol.u.shape[1:]
(0.0, (1,))
>>>
>>> # Lorenz with parameters, explicit algorithm and save points
>>> def lorenz(u, p, t):
...     x, y, z = u
...     sigma, rho, beta = p
...     return [sigma * (y - x), x * (rho - z) - y, x * y - beta * z]
>>> sol = ode_solve(
...     lorenz, [1.0, 0.0, 0.0], (0.0, 100.0), p=[10.0, 28.0, 8 / 3],
...     alg="Vern9", abstol=1e-10, reltol=1e-10, saveat=0.01,
... )
>>>
>>> # Julia-defined function, resolved by name
>>> get_runtime().evaluate('''
... function lorenz!(du, u, p, t)
...     du[1] = p[1] * (u[2] - u[1])
...     du[2] = u[1] * (p[2] - u[3]) - u[2]
...     du[3] = u[1] * u[2] - p[3] * u[3]
... end''')
>>> sol = ode_solve(None, [1.0, 0.0, 0.0], (0.0, 100.0), p=[10.0, 28.0, 8 / 3], fname="lorenz!")
>>>
>>> # Geometric Brownian motion
>>> sol = sde_solve(
...     lambda u, p, t: 1.01 * u,
...     lambda u, p, t: 0.87 * u,
...     [0.5], (0.0, 1.0), alg="EM", dt=1e-3, seed=42,
... )
"""

import logging
import warnings
from typing import Any, Callable, Optional, Union

from diffeqbridge.algorithms import is_python_safe
from diffeqbridge.bridge import get_runtime
from diffeqbridge.errors import ArgumentConflictError
from diffeqbridge.function_adapter import DerivativeFunction, FunctionForm
from diffeqbridge.problem import build_ode_problem, build_sde_problem, prepare_tspan
from diffeqbridge.result import materialize
from diffeqbridge.solver import DEFAULT_ABSTOL, DEFAULT_RELTOL, SolveInvoker, SolverOptions
from diffeqbridge.types.core import ArrayLike, Parameters, SaveAt
from diffeqbridge.types.protocols import SolverEngineProtocol
from diffeqbridge.types.trajectories import Solution

logger = logging.getLogger(__name__)

DerivativeArg = Optional[Union[Callable, DerivativeFunction]]


def _build_options(
    options: Optional[SolverOptions],
    alg: Optional[str],
    abstol: float,
    reltol: float,
    saveat: SaveAt,
    **extra_fields,
) -> SolverOptions:
    """Merge loose keyword options into a SolverOptions record."""
    fields = {k: v for k, v in extra_fields.items() if v is not None}
    solve_kwargs = fields.pop("extra", None) or {}

    if options is None:
        return SolverOptions(
            algorithm=alg,
            abstol=abstol,
            reltol=reltol,
            saveat=saveat,
            extra=solve_kwargs,
            **fields,
        )

    loose = []
    if alg is not None:
        loose.append("alg")
    if abstol != DEFAULT_ABSTOL:
        loose.append("abstol")
    if reltol != DEFAULT_RELTOL:
        loose.append("reltol")
    if saveat is not None:
        loose.append("saveat")
    loose.extend(sorted(fields))
    if solve_kwargs:
        loose.extend(sorted(solve_kwargs))
    if loose:
        raise ArgumentConflictError(
            f"Pass solver settings either via 'options' or as keywords, not both "
            f"(got options and {loose})"
        )
    return options


def _warn_if_unsafe(options: SolverOptions, *derivatives: DerivativeFunction) -> None:
    if options.algorithm is None or is_python_safe(options.algorithm):
        return
    if any(d.form == FunctionForm.EXPRESSION for d in derivatives):
        warnings.warn(
            f"Algorithm '{options.algorithm}' needs a Jacobian via automatic "
            f"differentiation, which often fails for Python-defined derivatives. "
            f"Define the function in Julia and pass it by name if the solve fails.",
            UserWarning,
            stacklevel=3,
        )


def _warn_if_saveat_outside(options: SolverOptions, tspan: Any) -> None:
    if options.saveat is None or isinstance(options.saveat, float):
        return
    t0, t1 = prepare_tspan(tspan)
    outside = [s for s in options.saveat if s < t0 or s > t1]
    if outside:
        warnings.warn(
            f"saveat times {outside} lie outside tspan ({t0}, {t1}); "
            f"the solver will not report them",
            UserWarning,
            stacklevel=3,
        )


def ode_solve(
    f: DerivativeArg,
    u0: ArrayLike,
    tspan: Any,
    p: Parameters = None,
    alg: Optional[str] = None,
    abstol: float = DEFAULT_ABSTOL,
    reltol: float = DEFAULT_RELTOL,
    saveat: SaveAt = None,
    fname: Optional[str] = None,
    *,
    dt: Optional[float] = None,
    adaptive: Optional[bool] = None,
    maxiters: Optional[int] = None,
    options: Optional[SolverOptions] = None,
    runtime: Optional[SolverEngineProtocol] = None,
    **solve_kwargs,
) -> Solution:
    """
    Solve ``du/dt = f(u, p, t)`` over ``tspan`` from ``u0``.

    Parameters
    ----------
    f : Callable or None
        ``f(u, p, t) -> du`` or in-place ``f(du, u, p, t)``.
        Must be None when ``fname`` is given.
    u0 : ArrayLike
        Initial state, any rank >= 1
    tspan : (float, float)
        Integration interval (t0, t1), t0 <= t1
    p : optional
        Parameter vector passed to f
    alg : Optional[str]
        Julia algorithm expression, e.g. 'Tsit5', 'AutoTsit5(Rosenbrock23())'.
        None selects automatically.
    abstol, reltol : float
        Tolerances (default 1e-6 / 1e-3)
    saveat : None, float or sequence
        Save interval or explicit save times
    fname : Optional[str]
        Name of an in-place function already defined in Julia
    dt, maxiters : optional
        Initial step size and iteration cap
    adaptive : Optional[bool]
        False for fixed-step integration with ``dt`` (e.g. ``alg="Euler"``)
    options : Optional[SolverOptions]
        Pre-built options; exclusive with the loose keywords above
    runtime : Optional[SolverEngineProtocol]
        Engine to use (default: process-wide Julia runtime)
    **solve_kwargs
        Further keywords forwarded to Julia's solve

    Returns
    -------
    Solution
        ``t`` of shape (T,), ``u`` of shape (T, *u0.shape)

    Raises
    ------
    ArgumentConflictError
        f and fname both given (or neither)
    ProblemConstructionError
        Invalid u0 or tspan
    ShapeMismatchError
        f returned the wrong number of elements
    BridgeUnavailableError
        Julia / diffeqpy unavailable
    """
    derivative = DerivativeFunction.resolve(f, fname, role="f")
    opts = _build_options(
        options,
        alg,
        abstol,
        reltol,
        saveat,
        dt=dt,
        adaptive=adaptive,
        maxiters=maxiters,
        extra=solve_kwargs,
    )
    _warn_if_unsafe(opts, derivative)
    _warn_if_saveat_outside(opts, tspan)

    engine = runtime if runtime is not None else get_runtime()
    problem = build_ode_problem(engine, derivative, u0, tspan, p)
    handle = SolveInvoker(engine).invoke(problem, opts)
    return materialize(handle)


def sde_solve(
    f: DerivativeArg,
    g: DerivativeArg,
    u0: ArrayLike,
    tspan: Any,
    p: Parameters = None,
    alg: Optional[str] = None,
    abstol: float = DEFAULT_ABSTOL,
    reltol: float = DEFAULT_RELTOL,
    saveat: SaveAt = None,
    fname: Optional[str] = None,
    gname: Optional[str] = None,
    *,
    seed: Optional[int] = None,
    dt: Optional[float] = None,
    noise_rate_prototype: Optional[ArrayLike] = None,
    adaptive: Optional[bool] = None,
    maxiters: Optional[int] = None,
    options: Optional[SolverOptions] = None,
    runtime: Optional[SolverEngineProtocol] = None,
    **solve_kwargs,
) -> Solution:
    """
    Solve ``du = f(u, p, t) dt + g(u, p, t) dW`` over ``tspan`` from ``u0``.

    Parameters
    ----------
    f : Callable or None
        Drift, same conventions as ode_solve
    g : Callable or None
        Diffusion. Diagonal noise: same shape as u0. Non-diagonal noise:
        shape of ``noise_rate_prototype``.
    u0, tspan, p, alg, abstol, reltol, saveat
        As in ode_solve
    fname, gname : Optional[str]
        Julia-defined drift / diffusion names
    seed : Optional[int]
        Noise seed; same seed gives the same path
    dt : Optional[float]
        Step size, required by fixed-step methods such as 'EM'
    noise_rate_prototype : optional
        (n, m) matrix for non-diagonal noise
    adaptive, maxiters, options, runtime, **solve_kwargs
        As in ode_solve

    Returns
    -------
    Solution

    Raises
    ------
    DimensionMismatchError
        Drift and diffusion outputs disagree
    """
    drift = DerivativeFunction.resolve(f, fname, role="f")
    diffusion = DerivativeFunction.resolve(g, gname, role="g")
    opts = _build_options(
        options,
        alg,
        abstol,
        reltol,
        saveat,
        dt=dt,
        seed=seed,
        adaptive=adaptive,
        maxiters=maxiters,
        extra=solve_kwargs,
    )
    _warn_if_unsafe(opts, drift, diffusion)
    _warn_if_saveat_outside(opts, tspan)

    engine = runtime if runtime is not None else get_runtime()
    problem = build_sde_problem(
        engine, drift, diffusion, u0, tspan, p, noise_rate_prototype=noise_rate_prototype
    )
    handle = SolveInvoker(engine).invoke(problem, opts)
    return materialize(handle)
