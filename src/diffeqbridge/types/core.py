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
Core Type Aliases
=================

Semantic aliases for the values that cross the Python/Julia boundary.

Shape Conventions
-----------------
- StateVector: (n,) or any higher rank, at least one element
- TimeSpan: (t0, t1) with t0 <= t1
- TimePoints: (T,)
- StateTrajectory: (T, *u0.shape), time-major

Examples
--------
>>> u0: StateVector = np.array([1.0, 0.0])
>>> tspan: TimeSpan = (0.0, 10.0)
>>> p: Parameters = [9.81, 1.0]
"""

from typing import Any, Callable, Optional, Sequence, Tuple, Union

import numpy as np

ArrayLike = Union[np.ndarray, Sequence[float], float]
"""Anything np.asarray accepts as numeric data."""

ScalarLike = Union[int, float, np.floating, np.integer]

StateVector = np.ndarray
"""
State u at one time point, float64.

Any rank >= 1; the shape is fixed for the duration of one solve.
"""

StateTrajectory = np.ndarray
"""Stacked states, shape (T, *u0.shape), time-major."""

TimePoints = np.ndarray
"""Ordered time points, shape (T,)."""

TimeSpan = Tuple[float, float]
"""Integration interval (t0, t1)."""

Parameters = Optional[Union[np.ndarray, Sequence[float]]]
"""Opaque parameter vector handed to every derivative call, or None."""

SaveAt = Optional[Union[float, Sequence[float], np.ndarray]]
"""
Save-point request:
- None: engine chooses (every accepted step)
- float: fixed save interval
- sequence: exact save times
"""

OutOfPlaceFunction = Callable[[np.ndarray, Any, float], ArrayLike]
"""Return-by-value derivative: f(u, p, t) -> du"""

InPlaceFunction = Callable[[Any, Any, Any, float], None]
"""In-place derivative: f!(du, u, p, t), writes into du"""
