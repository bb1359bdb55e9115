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
Trajectory Result Types
=======================

Solution is the only value a successful solve produces. It is immutable:
both arrays are marked read-only and the dataclass is frozen.

Shape Convention
----------------
Time-major ordering:
- t: (T,)            time points
- u: (T, *u0.shape)  state at each time point

u[i] has exactly the shape of the initial state, so a 2x2 matrix ODE
yields u of shape (T, 2, 2).

Examples
--------
>>> sol = ode_solve(f, [0.5], (0.0, 1.0))
>>> sol.t.shape, sol.u.shape
((5,), (5, 1))
>>> table = sol.as_table()     # (T, 1 + n), time column first
"""

from dataclasses import dataclass

import numpy as np

from diffeqbridge.errors import MaterializationError
from diffeqbridge.types.core import StateTrajectory, StateVector, TimePoints


@dataclass(frozen=True)
class Solution:
    """
    Time points and states produced by one solve.

    Attributes
    ----------
    t : TimePoints
        Solver-recorded time points (T,)
    u : StateTrajectory
        States (T, *u0.shape), u[i] recorded at t[i]
    """

    t: TimePoints
    u: StateTrajectory

    def __post_init__(self):
        t = np.array(self.t, dtype=np.float64)
        u = np.array(self.u, dtype=np.float64)

        if t.ndim != 1:
            raise MaterializationError(f"Time points must be 1-D, got shape {t.shape}")
        if u.shape[:1] != t.shape:
            raise MaterializationError(
                f"Solution has {len(t)} time points but {u.shape[0] if u.ndim else 0} states"
            )

        t.setflags(write=False)
        u.setflags(write=False)
        # Frozen dataclass: bypass __setattr__ to store the normalized copies
        object.__setattr__(self, "t", t)
        object.__setattr__(self, "u", u)

    def __len__(self) -> int:
        return len(self.t)

    @property
    def final_state(self) -> StateVector:
        """State at the last recorded time point."""
        return self.u[-1]

    def as_table(self) -> np.ndarray:
        """
        Flatten into a (T, 1 + n) table: time column, then each state
        component in C order.
        """
        if len(self.t) == 0:
            width = int(np.prod(self.u.shape[1:])) if self.u.ndim > 1 else 0
            return np.empty((0, 1 + width), dtype=np.float64)
        flat = self.u.reshape(len(self.t), -1)
        return np.column_stack([self.t, flat])

    def __repr__(self) -> str:
        state_shape = self.u.shape[1:]
        return f"Solution(n_points={len(self.t)}, state_shape={state_shape})"
