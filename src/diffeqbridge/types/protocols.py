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
Structural Protocols
====================

The solve pipeline never talks to diffeqpy directly: it talks to an object
satisfying SolverEngineProtocol. JuliaRuntime is the production
implementation; tests substitute a pure-NumPy fake.

Protocol Contract
-----------------
evaluate(source)
    Evaluate source text in the engine's native syntax, return a handle
    (function, algorithm instance, value).
ode_problem(f, u0, tspan, p)
    Build an ODE problem descriptor from an in-place function handle.
sde_problem(f, g, u0, tspan, p, **kwargs)
    Build an SDE problem descriptor from drift and diffusion handles.
solve(problem, *alg, **kwargs)
    Run the solver, return an opaque handle exposing .t and .u.
no_parameters
    Value passed in the parameters slot when the caller gave none.
"""

from typing import Any, Protocol, Tuple, runtime_checkable


@runtime_checkable
class SolutionHandleProtocol(Protocol):
    """Opaque solution returned by the engine."""

    t: Any
    u: Any


@runtime_checkable
class SolverEngineProtocol(Protocol):
    """
    Minimal interface of a differential-equation engine.

    Examples
    --------
    >>> def run(engine: SolverEngineProtocol):
    ...     prob = engine.ode_problem(f, u0, (0.0, 1.0), engine.no_parameters)
    ...     return engine.solve(prob)
    """

    no_parameters: Any

    def evaluate(self, source: str) -> Any:
        ...

    def ode_problem(self, f: Any, u0: Any, tspan: Tuple[float, float], p: Any) -> Any:
        ...

    def sde_problem(
        self, f: Any, g: Any, u0: Any, tspan: Tuple[float, float], p: Any, **kwargs
    ) -> Any:
        ...

    def solve(self, problem: Any, *args, **kwargs) -> SolutionHandleProtocol:
        ...
