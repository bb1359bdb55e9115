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
Problem Builder: ODEProblem / SDEProblem descriptors.

Inputs are normalized before they cross into Julia:
- u0 becomes a float64 array with at least one element
- tspan becomes a (float, float) tuple, the native pair on the Julia side
- p becomes a float64 array, or the runtime's no-parameters sentinel

For SDEs, return-by-value drift and diffusion functions are probed once
at (u0, p, t0) so that a dimension disagreement fails here, at
construction time, rather than deep inside the solver.
"""

import logging
from typing import Any, Optional

import numpy as np

from diffeqbridge.errors import DimensionMismatchError, ProblemConstructionError
from diffeqbridge.function_adapter import DerivativeFunction, FunctionForm, adapt, squeezed_shape
from diffeqbridge.types.core import ArrayLike, Parameters, StateVector, TimeSpan
from diffeqbridge.types.protocols import SolverEngineProtocol

logger = logging.getLogger(__name__)


def prepare_state(u0: ArrayLike) -> StateVector:
    """
    Convert an initial condition to a float64 array of rank >= 1.

    Raises
    ------
    ProblemConstructionError
        If u0 is empty, non-numeric or contains NaN/Inf
    """
    try:
        state = np.array(u0, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ProblemConstructionError(f"Initial state is not numeric: {e}") from e

    if state.ndim == 0:
        state = state.reshape(1)
    if state.size == 0:
        raise ProblemConstructionError("Initial state u0 is empty")
    if not np.all(np.isfinite(state)):
        raise ProblemConstructionError(f"Initial state contains NaN or Inf: {state}")
    return state


def prepare_tspan(tspan: Any) -> TimeSpan:
    """
    Convert a time span to a (t0, t1) float pair with t0 <= t1.

    Raises
    ------
    ProblemConstructionError
        If tspan is not two finite reals in non-decreasing order
    """
    try:
        values = np.asarray(tspan, dtype=np.float64).ravel()
    except (TypeError, ValueError) as e:
        raise ProblemConstructionError(f"Time span is not numeric: {tspan!r}") from e

    if values.shape != (2,):
        raise ProblemConstructionError(
            f"Time span must have exactly two elements (t0, t1), got {tspan!r}"
        )
    if not np.all(np.isfinite(values)):
        raise ProblemConstructionError(f"Time span must be finite, got {tspan!r}")

    t0, t1 = float(values[0]), float(values[1])
    if t0 > t1:
        raise ProblemConstructionError(f"Time span must satisfy t0 <= t1, got ({t0}, {t1})")
    return (t0, t1)


def prepare_parameters(runtime: SolverEngineProtocol, p: Parameters) -> Any:
    """Return p as a float64 array, or the runtime's no-parameters sentinel."""
    if p is None:
        return runtime.no_parameters

    try:
        params = np.array(p, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ProblemConstructionError(f"Parameters must be numeric: {e}") from e
    if params.ndim == 0:
        params = params.reshape(1)
    return params


def build_ode_problem(
    runtime: SolverEngineProtocol,
    f: DerivativeFunction,
    u0: ArrayLike,
    tspan: Any,
    p: Parameters = None,
) -> Any:
    """
    Assemble an ODE problem descriptor.

    Parameters
    ----------
    runtime : SolverEngineProtocol
        Engine that owns the problem
    f : DerivativeFunction
        Right-hand side
    u0 : ArrayLike
        Initial state
    tspan : (float, float)
        Integration interval
    p : optional
        Parameters passed to every call of f

    Returns
    -------
    Any
        Engine problem handle
    """
    state = prepare_state(u0)
    span = prepare_tspan(tspan)
    params = prepare_parameters(runtime, p)

    f_engine = adapt(runtime, f)
    logger.debug("Building ODE problem: f=%s, u0 shape=%s, tspan=%s", f.label, state.shape, span)
    return runtime.ode_problem(f_engine, state, span, params)


def _probe_shape(derivative: DerivativeFunction, state: StateVector, params: Any, t0: float):
    """Output shape of a return-by-value callable at (u0, p, t0), else None."""
    if derivative.form != FunctionForm.EXPRESSION or derivative.in_place:
        return None
    return np.shape(np.asarray(derivative.func(state.copy(), params, t0), dtype=np.float64))


def build_sde_problem(
    runtime: SolverEngineProtocol,
    f: DerivativeFunction,
    g: DerivativeFunction,
    u0: ArrayLike,
    tspan: Any,
    p: Parameters = None,
    noise_rate_prototype: Optional[ArrayLike] = None,
) -> Any:
    """
    Assemble an SDE problem descriptor ``du = f(u,p,t) dt + g(u,p,t) dW``.

    Parameters
    ----------
    runtime : SolverEngineProtocol
        Engine that owns the problem
    f : DerivativeFunction
        Drift term
    g : DerivativeFunction
        Diffusion term. Diagonal noise unless noise_rate_prototype is given.
    u0 : ArrayLike
        Initial state
    tspan : (float, float)
        Integration interval
    p : optional
        Parameters shared by f and g
    noise_rate_prototype : optional
        Matrix (n, m) shaped like g's output for non-diagonal noise

    Raises
    ------
    DimensionMismatchError
        If probed drift and diffusion outputs have incompatible shapes
    """
    state = prepare_state(u0)
    span = prepare_tspan(tspan)
    params = prepare_parameters(runtime, p)

    prototype = None
    if noise_rate_prototype is not None:
        prototype = np.array(noise_rate_prototype, dtype=np.float64)
        if prototype.ndim != 2 or prototype.shape[0] != state.size:
            raise DimensionMismatchError(
                f"noise_rate_prototype must have shape ({state.size}, m), "
                f"got {prototype.shape}"
            )

    drift_shape = _probe_shape(f, state, params, span[0])
    diffusion_shape = _probe_shape(g, state, params, span[0])

    if drift_shape is not None and squeezed_shape(drift_shape) != squeezed_shape(state.shape):
        raise DimensionMismatchError(
            f"Drift '{f.label}' returned shape {drift_shape}, expected {state.shape}"
        )
    if prototype is not None:
        if diffusion_shape is not None and diffusion_shape != prototype.shape:
            raise DimensionMismatchError(
                f"Diffusion '{g.label}' returned shape {diffusion_shape}, "
                f"expected noise_rate_prototype shape {prototype.shape}"
            )
    elif (
        drift_shape is not None
        and diffusion_shape is not None
        and squeezed_shape(diffusion_shape) != squeezed_shape(state.shape)
    ):
        raise DimensionMismatchError(
            f"Drift '{f.label}' returned shape {drift_shape} but diffusion "
            f"'{g.label}' returned shape {diffusion_shape}; diagonal noise "
            f"requires both to match the state"
        )

    f_engine = adapt(runtime, f)
    g_engine = adapt(runtime, g)

    kwargs = {}
    if prototype is not None:
        kwargs["noise_rate_prototype"] = prototype

    logger.debug(
        "Building SDE problem: f=%s, g=%s, u0 shape=%s, tspan=%s",
        f.label,
        g.label,
        state.shape,
        span,
    )
    return runtime.sde_problem(f_engine, g_engine, state, span, params, **kwargs)
