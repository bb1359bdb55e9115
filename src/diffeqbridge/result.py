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

"""Result Materializer: Julia solution handle -> Solution of NumPy arrays."""

import logging

import numpy as np

from diffeqbridge.errors import MaterializationError
from diffeqbridge.types.protocols import SolutionHandleProtocol
from diffeqbridge.types.trajectories import Solution

logger = logging.getLogger(__name__)


def materialize(handle: SolutionHandleProtocol) -> Solution:
    """
    Copy time points and states out of an engine solution.

    Each state keeps its original shape, so u has shape (T, *u0.shape).
    No filtering or interpolation happens here.

    Raises
    ------
    MaterializationError
        If the handle lacks t/u or their lengths differ
    """
    if not hasattr(handle, "t") or not hasattr(handle, "u"):
        raise MaterializationError(
            f"Solution handle {type(handle).__name__} exposes no 't'/'u' arrays"
        )

    t_out = np.array(handle.t, dtype=np.float64).ravel()

    # sol.u is a vector of state arrays; stack them time-major
    states = [np.array(u_i, dtype=np.float64) for u_i in handle.u]
    if len(states) != len(t_out):
        raise MaterializationError(
            f"Solution has {len(t_out)} time points but {len(states)} states"
        )

    if states:
        shapes = {s.shape for s in states}
        if len(shapes) != 1:
            raise MaterializationError(f"States have inconsistent shapes: {sorted(shapes)}")
        u_out = np.stack(states)
    else:
        u_out = np.empty((0,), dtype=np.float64)

    logger.debug("Materialized %d time points, state shape %s", len(t_out), u_out.shape[1:])
    return Solution(t=t_out, u=u_out)
