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
Solve Invoker: algorithm resolution, solver options and the solve call.

Algorithm strings use Julia syntax and are resolved by Julia itself:

- None / "automatic" : no algorithm argument, Julia picks one
- "Tsit5"            : evaluated as ``Tsit5()``
- "AutoTsit5(Rosenbrock23())", "Vern9(lazy=false)" : evaluated verbatim

Names are never checked against a local catalog. An unknown name fails
inside Julia and that error reaches the caller unchanged.

Performance Note
----------------
The first solve with a given algorithm in a process triggers Julia JIT
compilation and can take much longer than later solves. This latency is
expected; it is logged, never retried or treated as an error.

Examples
--------
>>> options = SolverOptions(algorithm="Vern9", abstol=1e-10, reltol=1e-10)
>>> handle = SolveInvoker(runtime).invoke(problem, options)
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

import numpy as np

from diffeqbridge.errors import InvalidOptionError
from diffeqbridge.types.core import SaveAt
from diffeqbridge.types.protocols import SolutionHandleProtocol, SolverEngineProtocol

logger = logging.getLogger(__name__)

AUTOMATIC_ALIASES = ("automatic", "auto", "default", "")

DEFAULT_ABSTOL = 1e-6
DEFAULT_RELTOL = 1e-3

# Keys SolverOptions forwards itself; 'extra' may not shadow them
_NAMED_KWARGS = ("abstol", "reltol", "saveat", "dt", "adaptive", "maxiters", "seed")


def _normalize_saveat(saveat: SaveAt):
    """Validate saveat; returns None, a positive float, or a tuple of floats."""
    if saveat is None:
        return None

    if np.ndim(saveat) == 0:
        step = float(saveat)
        if not np.isfinite(step) or step <= 0:
            raise InvalidOptionError(f"saveat interval must be a positive number, got {saveat}")
        return step

    points = np.asarray(saveat, dtype=np.float64).ravel()
    if points.size == 0:
        raise InvalidOptionError("saveat sequence must contain at least one time point")
    if not np.all(np.isfinite(points)):
        raise InvalidOptionError(f"saveat contains NaN or Inf: {points}")
    if np.any(np.diff(points) < 0):
        raise InvalidOptionError("saveat time points must be in non-decreasing order")
    return tuple(float(v) for v in points)


@dataclass(frozen=True)
class SolverOptions:
    """
    Validated solver configuration.

    Parameters
    ----------
    algorithm : Optional[str]
        Julia algorithm expression. None (or 'automatic') lets Julia choose.
    abstol : float
        Absolute tolerance (default: 1e-6)
    reltol : float
        Relative tolerance (default: 1e-3)
    saveat : None, float or sequence
        None lets the stepper choose; a float is a fixed save interval;
        a sequence lists exact save times.
    dt : Optional[float]
        Initial step, or the fixed step for non-adaptive algorithms (e.g. EM)
    adaptive : Optional[bool]
        Forwarded as ``adaptive=`` only when set
    maxiters : Optional[int]
        Maximum solver iterations
    seed : Optional[int]
        Noise seed for SDE solves
    extra : Mapping[str, Any]
        Additional keyword arguments passed to ``solve`` verbatim

    Raises
    ------
    InvalidOptionError
        If any value is out of range
    """

    algorithm: Optional[str] = None
    abstol: float = DEFAULT_ABSTOL
    reltol: float = DEFAULT_RELTOL
    saveat: SaveAt = None
    dt: Optional[float] = None
    adaptive: Optional[bool] = None
    maxiters: Optional[int] = None
    seed: Optional[int] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        algorithm = self.algorithm
        if algorithm is not None:
            if not isinstance(algorithm, str):
                raise InvalidOptionError(
                    f"algorithm must be a string in Julia syntax, got {type(algorithm).__name__}"
                )
            algorithm = algorithm.strip()
            if algorithm.lower() in AUTOMATIC_ALIASES:
                algorithm = None
        object.__setattr__(self, "algorithm", algorithm)

        for name in ("abstol", "reltol"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.floating)):
                raise InvalidOptionError(f"{name} must be a real number, got {value!r}")
            if not np.isfinite(value) or value <= 0:
                raise InvalidOptionError(f"{name} must be positive, got {value}")
            object.__setattr__(self, name, float(value))

        object.__setattr__(self, "saveat", _normalize_saveat(self.saveat))

        if self.dt is not None:
            if not np.isfinite(self.dt) or self.dt <= 0:
                raise InvalidOptionError(f"dt must be positive, got {self.dt}")
            object.__setattr__(self, "dt", float(self.dt))

        if self.maxiters is not None and int(self.maxiters) <= 0:
            raise InvalidOptionError(f"maxiters must be positive, got {self.maxiters}")

        if self.seed is not None and int(self.seed) < 0:
            raise InvalidOptionError(f"seed must be non-negative, got {self.seed}")

        clashes = sorted(set(self.extra) & set(_NAMED_KWARGS))
        if clashes:
            raise InvalidOptionError(
                f"extra solve options {clashes} duplicate named SolverOptions fields"
            )
        object.__setattr__(self, "extra", dict(self.extra))

    def to_solve_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for the engine's solve call."""
        kwargs: Dict[str, Any] = {"abstol": self.abstol, "reltol": self.reltol}

        if isinstance(self.saveat, tuple):
            kwargs["saveat"] = list(self.saveat)
        elif self.saveat is not None:
            kwargs["saveat"] = self.saveat

        if self.dt is not None:
            kwargs["dt"] = self.dt
        if self.adaptive is not None:
            kwargs["adaptive"] = bool(self.adaptive)
        if self.maxiters is not None:
            kwargs["maxiters"] = int(self.maxiters)
        if self.seed is not None:
            kwargs["seed"] = int(self.seed)

        kwargs.update(self.extra)
        return kwargs

    @property
    def algorithm_label(self) -> str:
        return self.algorithm if self.algorithm is not None else "automatic"


def algorithm_source(algorithm: str) -> str:
    """
    Julia source that constructs ``algorithm``.

    A bare identifier gets ``()`` appended; anything else is used as is.

    >>> algorithm_source("Tsit5")
    'Tsit5()'
    >>> algorithm_source("AutoTsit5(Rosenbrock23())")
    'AutoTsit5(Rosenbrock23())'
    """
    text = algorithm.strip()
    if text.replace("_", "").replace(".", "").isalnum() and "(" not in text:
        return f"{text}()"
    return text


def resolve_algorithm(runtime: SolverEngineProtocol, algorithm: Optional[str]) -> Any:
    """
    Turn an algorithm string into an engine algorithm value.

    Returns None for automatic selection. Errors from the engine (unknown
    name, bad syntax) propagate unchanged.
    """
    if algorithm is None:
        return None
    return runtime.evaluate(algorithm_source(algorithm))


# Algorithms already solved with in this process (compilation is per process)
_seen_algorithms: Set[str] = set()


class SolveInvoker:
    """
    Runs the engine's solve on a prepared problem.

    Parameters
    ----------
    runtime : SolverEngineProtocol
        Engine to solve with

    Examples
    --------
    >>> invoker = SolveInvoker(get_runtime())
    >>> handle = invoker.invoke(problem, SolverOptions(algorithm="Tsit5"))
    """

    def __init__(self, runtime: SolverEngineProtocol):
        self.runtime = runtime

    def invoke(self, problem: Any, options: SolverOptions) -> SolutionHandleProtocol:
        """
        Solve ``problem`` and return the engine's opaque solution handle.

        Nothing is caught: engine failures reach the caller unmodified.
        """
        label = options.algorithm_label
        if label not in _seen_algorithms:
            logger.info(
                "First solve with algorithm '%s' in this process; "
                "expect extra latency from Julia compilation",
                label,
            )

        alg = resolve_algorithm(self.runtime, options.algorithm)
        args = () if alg is None else (alg,)
        kwargs = options.to_solve_kwargs()

        logger.debug("solve(alg=%s, %s)", label, kwargs)
        start = time.perf_counter()
        handle = self.runtime.solve(problem, *args, **kwargs)
        elapsed = time.perf_counter() - start
        _seen_algorithms.add(label)

        logger.debug(
            "Solve with '%s' finished in %.3fs (retcode=%s)",
            label,
            elapsed,
            getattr(handle, "retcode", "n/a"),
        )
        return handle
