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
Function Adapter: derivative functions in Julia's in-place convention.

DifferentialEquations.jl calls derivatives as ``f!(du, u, p, t)`` and
expects ``du`` to be written in place. A derivative reaches the engine
in one of two forms:

EXPRESSION
    A Python callable. In-place callables (four required positional arguments) are
    handed over unchanged. Return-by-value callables ``f(u, p, t)`` get a
    synthesized in-place wrapper that copies the result into ``du``
    element by element.

NAMED
    The name of a function already defined in Julia. The runtime resolves
    the name, so no Python code runs per integration step. For problems
    with many steps this is much faster than crossing the boundary on
    every call.

Examples
--------
>>> spec = DerivativeFunction.from_callable(lambda u, p, t: -u)
>>> spec.form
<FunctionForm.EXPRESSION: 'expression'>
>>> spec.in_place
False
>>>
>>> spec = DerivativeFunction.resolve(None, "lorenz!", role="f")
>>> spec.form
<FunctionForm.NAMED: 'named'>
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

from diffeqbridge.errors import ArgumentConflictError, ShapeMismatchError
from diffeqbridge.types.protocols import SolverEngineProtocol

logger = logging.getLogger(__name__)


class FunctionForm(Enum):
    """
    Which variant of DerivativeFunction is active.

    EXPRESSION : Python callable
    NAMED : name of a Julia-defined function
    """

    EXPRESSION = "expression"
    NAMED = "named"


def _count_positional(func: Callable) -> Optional[int]:
    """Number of required positional parameters, or None if it can't be determined."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None

    count = 0
    for param in signature.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ) and param.default is inspect.Parameter.empty:
            count += 1
    return count


@dataclass(frozen=True)
class DerivativeFunction:
    """
    Tagged choice between a Python callable and a Julia function name.

    Exactly one of ``func`` / ``name`` is set, matching ``form``.

    Attributes
    ----------
    form : FunctionForm
        Active variant
    func : Optional[Callable]
        Python callable (EXPRESSION only)
    name : Optional[str]
        Julia function name (NAMED only)
    in_place : bool
        True if ``func`` already follows ``f!(du, u, p, t)``.
        Always True for NAMED.
    """

    form: FunctionForm
    func: Optional[Callable] = None
    name: Optional[str] = None
    in_place: bool = True

    @classmethod
    def from_callable(cls, func: Callable, in_place: Optional[bool] = None) -> "DerivativeFunction":
        """
        Wrap a Python derivative.

        Parameters
        ----------
        func : Callable
            ``f(u, p, t) -> du`` or ``f(du, u, p, t) -> None``
        in_place : Optional[bool]
            Force the convention. If None, four required positional
            parameters means in-place, anything else means return-by-value.
            Parameters with defaults are not counted.
        """
        if not callable(func):
            raise TypeError(f"Derivative must be callable, got {type(func).__name__}")

        if in_place is None:
            in_place = _count_positional(func) == 4

        return cls(form=FunctionForm.EXPRESSION, func=func, in_place=in_place)

    @classmethod
    def from_name(cls, name: str) -> "DerivativeFunction":
        """Reference a function defined inside the Julia runtime."""
        if not isinstance(name, str) or not name.strip():
            raise ArgumentConflictError(
                f"Julia function name must be a non-empty string, got {name!r}"
            )
        return cls(form=FunctionForm.NAMED, name=name.strip())

    @classmethod
    def resolve(
        cls, func: Optional[Callable], name: Optional[str], role: str = "f"
    ) -> "DerivativeFunction":
        """
        Pick the active variant from a ``(f, fname)`` argument pair.

        Raises
        ------
        ArgumentConflictError
            If both a callable and a name are supplied, or neither is.
        """
        if isinstance(func, DerivativeFunction):
            if name is not None:
                raise ArgumentConflictError(
                    f"'{role}' is already a DerivativeFunction; do not pass '{role}name' too"
                )
            return func

        if func is not None and name is not None:
            raise ArgumentConflictError(
                f"Both a callable '{role}' and a Julia name '{role}name={name}' were given. "
                f"Pass '{role}=None' to use the Julia-defined function, "
                f"or drop '{role}name' to use the Python callable."
            )
        if name is not None:
            return cls.from_name(name)
        if func is None:
            raise ArgumentConflictError(
                f"No derivative supplied: pass a callable '{role}' or a Julia name '{role}name'"
            )
        return cls.from_callable(func)

    @property
    def label(self) -> str:
        if self.form == FunctionForm.NAMED:
            return f"julia:{self.name}"
        return f"python:{getattr(self.func, '__name__', type(self.func).__name__)}"


def squeezed_shape(shape) -> tuple:
    """Shape without singleton axes; outputs match a buffer when these agree."""
    return tuple(d for d in shape if d != 1)


class InPlaceWrapper:
    """
    In-place adapter around a return-by-value derivative.

    Called by the engine as ``wrapper(du, u, p, t)``. The output shape is
    only known when the engine hands over ``du``, so a mismatch surfaces
    on the first call as ShapeMismatchError.

    Attributes
    ----------
    nfev : int
        Number of times the engine called the wrapper
    """

    def __init__(self, func: Callable, label: str = "f"):
        self.func = func
        self.label = label
        self.nfev = 0

    def __call__(self, du, u, p, t):
        u_np = np.asarray(u, dtype=np.float64)
        out = np.asarray(self.func(u_np, p, float(t)), dtype=np.float64)
        self.nfev += 1

        shape = tuple(np.shape(du))
        if out.shape != shape:
            # Only singleton axes may differ: (n,) vs (n, 1), or a scalar for (1,)
            if squeezed_shape(out.shape) == squeezed_shape(shape):
                out = out.reshape(shape)
            else:
                raise ShapeMismatchError(
                    f"Derivative '{self.label}' returned shape {out.shape} "
                    f"but the output buffer has shape {shape}"
                )

        # Julia's in-place convention: fill du element by element
        if out.ndim == 1:
            for i in range(out.shape[0]):
                du[i] = out[i]
        else:
            for idx in np.ndindex(*shape):
                du[idx] = out[idx]
        return None

    def __repr__(self) -> str:
        return f"InPlaceWrapper({self.label}, nfev={self.nfev})"


def adapt(runtime: SolverEngineProtocol, derivative: DerivativeFunction) -> Any:
    """
    Produce the object the engine will call for ``derivative``.

    Parameters
    ----------
    runtime : SolverEngineProtocol
        Engine used to resolve NAMED functions
    derivative : DerivativeFunction
        Function to adapt

    Returns
    -------
    Any
        In-place callable or Julia function handle
    """
    if derivative.form == FunctionForm.NAMED:
        logger.debug("Resolving Julia function '%s'", derivative.name)
        return runtime.evaluate(derivative.name)

    if derivative.in_place:
        return derivative.func

    return InPlaceWrapper(derivative.func, label=derivative.label)
