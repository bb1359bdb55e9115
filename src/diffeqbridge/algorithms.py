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
Algorithm Catalog
=================

A hand-picked, informational list of DifferentialEquations.jl algorithms.

This catalog is NOT consulted when solving: any algorithm string Julia can
evaluate is accepted, and names missing here are not rejected. Julia owns
the real catalog.

Caveat for Python derivatives
-----------------------------
Rosenbrock, ESDIRK and implicit methods differentiate the right-hand side
to build a Jacobian. With a Python-defined derivative that autodiff call
crosses the bridge and often fails ("First call to automatic
differentiation for the Jacobian"). Define the function in Julia and pass
it by name (``fname=``) to use these methods.
"""

from typing import Dict, List, Optional, Union

from typing_extensions import TypedDict


class AlgorithmInfo(TypedDict, total=False):
    """
    Descriptive record for one algorithm.

    Attributes
    ----------
    name : str
        Full name
    problem : str
        'ode' or 'sde'
    order : Union[int, str]
        Convergence order (strong order for SDE methods)
    family : str
        Method family
    best_for : str
        Typical use
    python_safe : bool
        Works with Python-defined derivatives (no Jacobian autodiff)
    """

    name: str
    problem: str
    order: Union[int, float, str]
    family: str
    best_for: str
    python_safe: bool


_ODE_ALGORITHMS: Dict[str, List[str]] = {
    "nonstiff": ["Tsit5", "Vern6", "Vern7", "Vern8", "Vern9", "DP5", "DP8", "BS3"],
    "stiff": ["Rosenbrock23", "Rodas4", "Rodas5", "TRBDF2", "KenCarp4", "RadauIIA5", "QNDF", "FBDF"],
    "auto_switching": ["AutoTsit5(Rosenbrock23())", "AutoVern7(Rodas5())", "AutoVern9(Rodas5())"],
    "stabilized": ["ROCK2", "ROCK4", "ESERK5"],
    "low_order": ["Euler", "Midpoint", "Heun"],
}

_SDE_ALGORITHMS: Dict[str, List[str]] = {
    "euler_maruyama": ["EM", "LambaEM", "EulerHeun"],
    "stochastic_rk": ["SOSRI", "SOSRA", "SRIW1", "SRA1", "SRA3"],
    "milstein": ["RKMil", "RKMilCommute", "RKMilGeneral"],
    "implicit": ["ImplicitEM", "ImplicitRKMil", "SKenCarp"],
}

_NOT_PYTHON_SAFE = set(_ODE_ALGORITHMS["stiff"]) | {"ImplicitEM", "ImplicitRKMil", "SKenCarp"}

_ALGORITHM_INFO: Dict[str, AlgorithmInfo] = {
    "Tsit5": {
        "name": "Tsitouras 5(4)",
        "problem": "ode",
        "order": 5,
        "family": "Explicit Runge-Kutta",
        "best_for": "Default choice for non-stiff problems",
    },
    "Vern9": {
        "name": "Verner 9(8)",
        "problem": "ode",
        "order": 9,
        "family": "Explicit Runge-Kutta",
        "best_for": "Very tight tolerances on smooth problems",
    },
    "Rosenbrock23": {
        "name": "Rosenbrock 2(3)",
        "problem": "ode",
        "order": 2,
        "family": "Rosenbrock",
        "best_for": "Moderately stiff problems at loose tolerances",
    },
    "Rodas5": {
        "name": "Rodas 5(4)",
        "problem": "ode",
        "order": 5,
        "family": "Rosenbrock",
        "best_for": "Stiff problems at tight tolerances",
    },
    "AutoTsit5(Rosenbrock23())": {
        "name": "Auto-switching Tsit5 / Rosenbrock23",
        "problem": "ode",
        "order": "2-5",
        "family": "Stiffness detection",
        "best_for": "Unknown stiffness",
    },
    "ROCK4": {
        "name": "ROCK4",
        "problem": "ode",
        "order": 4,
        "family": "Stabilized explicit",
        "best_for": "Mildly stiff problems with large explicit part",
    },
    "EM": {
        "name": "Euler-Maruyama",
        "problem": "sde",
        "order": 0.5,
        "family": "Euler-Maruyama",
        "best_for": "Any noise, fixed dt",
    },
    "SOSRI": {
        "name": "Stability-optimized SRI",
        "problem": "sde",
        "order": 1.5,
        "family": "Stochastic Runge-Kutta",
        "best_for": "Diagonal or scalar noise, adaptive",
    },
    "SRA3": {
        "name": "Roessler SRA3",
        "problem": "sde",
        "order": 1.5,
        "family": "Stochastic Runge-Kutta",
        "best_for": "Additive noise",
    },
    "LambaEM": {
        "name": "Lamba's adaptive Euler-Maruyama",
        "problem": "sde",
        "order": 0.5,
        "family": "Euler-Maruyama",
        "best_for": "Any noise, adaptive dt",
    },
}


def list_algorithms(problem: Optional[str] = None) -> Dict[str, List[str]]:
    """
    Algorithms by category.

    Parameters
    ----------
    problem : Optional[str]
        'ode', 'sde', or None for both (categories prefixed 'ode.'/'sde.')

    Examples
    --------
    >>> list_algorithms("sde")["euler_maruyama"]
    ['EM', 'LambaEM', 'EulerHeun']
    """
    if problem == "ode":
        return {k: list(v) for k, v in _ODE_ALGORITHMS.items()}
    if problem == "sde":
        return {k: list(v) for k, v in _SDE_ALGORITHMS.items()}
    if problem is not None:
        raise ValueError(f"problem must be 'ode', 'sde' or None, got '{problem}'")

    merged = {f"ode.{k}": list(v) for k, v in _ODE_ALGORITHMS.items()}
    merged.update({f"sde.{k}": list(v) for k, v in _SDE_ALGORITHMS.items()})
    return merged


def is_python_safe(algorithm: str) -> bool:
    """False for algorithms that need Jacobian autodiff through the bridge."""
    head = algorithm.split("(")[0].strip()
    if head.startswith("Auto"):
        # Auto-switching is only as safe as its stiff fallback
        inner = algorithm[len(head) :].strip("() ")
        return is_python_safe(inner) if inner else True
    return head not in _NOT_PYTHON_SAFE


def get_algorithm_info(algorithm: str) -> AlgorithmInfo:
    """
    Describe an algorithm. Unknown names get a minimal record.

    Examples
    --------
    >>> get_algorithm_info("Tsit5")["order"]
    5
    """
    info: AlgorithmInfo = dict(
        _ALGORITHM_INFO.get(
            algorithm,
            {"name": algorithm, "best_for": "See the DifferentialEquations.jl documentation"},
        )
    )
    info["python_safe"] = is_python_safe(algorithm)
    return info
