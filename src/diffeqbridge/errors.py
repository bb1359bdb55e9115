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
Exception Hierarchy
===================

All errors raised by diffeqbridge itself derive from DiffEqBridgeError.
Each concrete class also derives from the builtin exception a caller
would naturally catch (ImportError, ValueError, RuntimeError).

Errors raised by Julia (unknown algorithm, solver failures) are NOT
wrapped: they reach the caller exactly as diffeqpy raises them.

Hierarchy
---------
DiffEqBridgeError
    BridgeUnavailableError      (ImportError)   diffeqpy / Julia unusable
    ProblemConstructionError    (ValueError)    bad u0, tspan or p
        DimensionMismatchError                  SDE drift vs diffusion
    ShapeMismatchError          (ValueError)    derivative output vs du
    ArgumentConflictError       (ValueError)    f and fname both given
    InvalidOptionError          (ValueError)    SolverOptions validation
    MaterializationError        (RuntimeError)  malformed solution handle
"""


class DiffEqBridgeError(Exception):
    """Base class for every error raised by diffeqbridge."""


class BridgeUnavailableError(DiffEqBridgeError, ImportError):
    """
    The Julia runtime could not be started or attached.

    Raised before any solve is attempted, chained to the underlying
    ImportError or Julia startup failure.
    """


class ProblemConstructionError(DiffEqBridgeError, ValueError):
    """The problem descriptor could not be assembled from the inputs."""


class DimensionMismatchError(ProblemConstructionError):
    """Drift and diffusion output dimensions disagree for an SDE problem."""


class ShapeMismatchError(DiffEqBridgeError, ValueError):
    """
    A return-by-value derivative produced an output whose shape differs
    from the engine's output buffer.

    Detected lazily, on the first call made by the engine.
    """


class ArgumentConflictError(DiffEqBridgeError, ValueError):
    """Mutually exclusive arguments were supplied together (or none was)."""


class InvalidOptionError(DiffEqBridgeError, ValueError):
    """A solver or configuration option failed validation."""


class MaterializationError(DiffEqBridgeError, RuntimeError):
    """The engine returned a solution handle that cannot be converted."""
