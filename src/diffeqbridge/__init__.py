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
diffeqbridge
============

Python front-end to Julia's DifferentialEquations.jl via diffeqpy.

Two entry points marshal Python derivatives and NumPy arrays into Julia
and bring the trajectory back as NumPy:

>>> from diffeqbridge import ode_solve, sde_solve
>>> sol = ode_solve(lambda u, p, t: 1.01 * u, [0.5], (0.0, 1.0))
>>> sol.t, sol.u

No integration method is implemented here; Julia does all numerics.

Configuration
-------------
DIFFEQBRIDGE_DEBUG=1          verbose logging
DIFFEQBRIDGE_JULIA_MODULE=ode load only OrdinaryDiffEq (ODE-only, faster)

Authors
-------
Gil Benezer

License
-------
GNU Affero General Public License v3.0
"""

import logging
import sys

from .algorithms import AlgorithmInfo, get_algorithm_info, list_algorithms
from .api import ode_solve, sde_solve
from .bridge import JuliaRuntime, get_runtime, reset_runtime
from .config import BridgeConfig, get_config, load_config
from .errors import (
    ArgumentConflictError,
    BridgeUnavailableError,
    DiffEqBridgeError,
    DimensionMismatchError,
    InvalidOptionError,
    MaterializationError,
    ProblemConstructionError,
    ShapeMismatchError,
)
from .function_adapter import DerivativeFunction, FunctionForm
from .solver import SolverOptions
from .types.trajectories import Solution

__version__ = "0.1.0"

_logger = logging.getLogger("diffeqbridge")
if not _logger.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(levelname)s - %(name)s - %(message)s"))
    _logger.addHandler(_handler)
    _logger.setLevel(logging.DEBUG if get_config().debug else logging.WARNING)

__all__ = [
    # Entry points
    "ode_solve",
    "sde_solve",
    # Data model
    "Solution",
    "SolverOptions",
    "DerivativeFunction",
    "FunctionForm",
    # Runtime
    "JuliaRuntime",
    "get_runtime",
    "reset_runtime",
    # Configuration
    "BridgeConfig",
    "get_config",
    "load_config",
    # Algorithm catalog
    "AlgorithmInfo",
    "list_algorithms",
    "get_algorithm_info",
    # Errors
    "DiffEqBridgeError",
    "BridgeUnavailableError",
    "ProblemConstructionError",
    "DimensionMismatchError",
    "ShapeMismatchError",
    "ArgumentConflictError",
    "InvalidOptionError",
    "MaterializationError",
]
