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
JuliaRuntime: the process-wide handle on DifferentialEquations.jl via diffeqpy.

Lifecycle
---------
- Nothing Julia-related happens at import time.
- get_runtime() creates the runtime on first use; importing diffeqpy
  starts Julia, which may take tens of seconds the first time.
- The runtime lives until the Python process exits. There is no teardown:
  an embedded Julia session cannot be restarted in-process.

Threading
---------
The runtime is a single shared resource with no internal locking.
Callers that solve from several threads must serialize access themselves.

Requirements
------------
Julia with DifferentialEquations.jl, and the Python package:
    $ pip install diffeqpy
    $ python -c 'from diffeqpy import install; install()'

Examples
--------
>>> runtime = get_runtime()
>>> runtime.evaluate('''
... function decay!(du, u, p, t)
...     du[1] = -u[1]
... end''')
>>> prob = runtime.ode_problem(runtime.evaluate("decay!"), [1.0], (0.0, 1.0), None)
>>> sol = runtime.solve(prob)
"""

import importlib
import logging
import time
from typing import Any, Optional, Tuple

import numpy as np

from diffeqbridge.config import BridgeConfig, get_config
from diffeqbridge.errors import BridgeUnavailableError

logger = logging.getLogger(__name__)

INSTALL_HINT = (
    "Installation steps:\n"
    "1. Install Julia from https://julialang.org/downloads/\n"
    "2. Install DifferentialEquations.jl:\n"
    "   julia> using Pkg\n"
    "   julia> Pkg.add('DifferentialEquations')\n"
    "3. Install Python package:\n"
    "   pip install diffeqpy\n"
    "4. Run Julia setup from Python:\n"
    "   python -c 'from diffeqpy import install; install()'"
)


class JuliaRuntime:
    """
    Solver engine backed by a diffeqpy module.

    Satisfies SolverEngineProtocol. All problem construction and solving is
    delegated to Julia; this class only forwards calls and records timing.

    Parameters
    ----------
    module : Any, optional
        An already-loaded diffeqpy module (``diffeqpy.de`` or
        ``diffeqpy.ode``). If None, the module named by
        ``config.julia_module`` is imported.
    config : BridgeConfig, optional
        Settings (default: process configuration from the environment)

    Raises
    ------
    BridgeUnavailableError
        If diffeqpy cannot be imported or Julia fails to start

    Attributes
    ----------
    module_name : str
        'de' or 'ode'
    no_parameters : None
        Parameters sentinel; diffeqpy maps None to Julia ``nothing``
    """

    no_parameters = None

    def __init__(self, module: Optional[Any] = None, config: Optional[BridgeConfig] = None):
        self.config = config if config is not None else get_config()
        self.module_name = self.config.julia_module

        if module is None:
            module = self._load_module(self.module_name)
        self.de = module

    @staticmethod
    def _load_module(name: str) -> Any:
        start = time.perf_counter()
        try:
            module = importlib.import_module(f"diffeqpy.{name}")
        except ImportError as e:
            raise BridgeUnavailableError(
                f"diffeqpy is required to reach DifferentialEquations.jl.\n\n{INSTALL_HINT}"
            ) from e
        except Exception as e:
            # Julia itself failed to boot (missing binary, broken depot, ...)
            raise BridgeUnavailableError(
                f"Julia runtime failed to start while loading diffeqpy.{name}: {e}\n\n"
                f"{INSTALL_HINT}"
            ) from e

        logger.info(
            "Julia runtime started (diffeqpy.%s) in %.1fs", name, time.perf_counter() - start
        )
        return module

    # ------------------------------------------------------------------
    # SolverEngineProtocol
    # ------------------------------------------------------------------

    def evaluate(self, source: str) -> Any:
        """Evaluate Julia source text and return the resulting value."""
        logger.debug("Evaluating Julia source: %s", source)
        return self.de.seval(source)

    def ode_problem(self, f: Any, u0: np.ndarray, tspan: Tuple[float, float], p: Any) -> Any:
        return self.de.ODEProblem(f, u0, tspan, p)

    def sde_problem(
        self, f: Any, g: Any, u0: np.ndarray, tspan: Tuple[float, float], p: Any, **kwargs
    ) -> Any:
        if self.module_name == "ode":
            raise BridgeUnavailableError(
                "SDE problems need the full DifferentialEquations.jl module. "
                "Unset DIFFEQBRIDGE_JULIA_MODULE or set it to 'de'."
            )
        return self.de.SDEProblem(f, g, u0, tspan, p, **kwargs)

    def solve(self, problem: Any, *args, **kwargs) -> Any:
        return self.de.solve(problem, *args, **kwargs)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def check(self) -> bool:
        """
        Solve a tiny Julia-defined problem to validate the installation.

        Returns
        -------
        bool
            True if the solve produced more than one time point

        Raises
        ------
        Exception
            Whatever Julia raises; nothing is caught here
        """
        decay = self.evaluate("(du, u, p, t) -> (du[1] = -u[1]; nothing)")
        problem = self.ode_problem(decay, np.array([1.0]), (0.0, 0.1), self.no_parameters)
        sol = self.solve(problem)
        return len(sol.t) > 1

    def __repr__(self) -> str:
        return f"JuliaRuntime(module='diffeqpy.{self.module_name}')"


# ============================================================================
# Process-wide Runtime
# ============================================================================

_runtime: Optional[JuliaRuntime] = None


def get_runtime() -> JuliaRuntime:
    """
    Return the process-wide JuliaRuntime, starting Julia on first call.

    Raises
    ------
    BridgeUnavailableError
        If diffeqpy or Julia is unavailable
    """
    global _runtime
    if _runtime is None:
        _runtime = JuliaRuntime()
    return _runtime


def reset_runtime() -> None:
    """
    Forget the cached runtime.

    The embedded Julia session keeps running; only the Python handle is
    dropped. The next get_runtime() builds a fresh handle.
    """
    global _runtime
    _runtime = None
