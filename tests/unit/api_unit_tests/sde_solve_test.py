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
Unit Tests for sde_solve

Tests drift/diffusion marshaling, seeds, save grids and dimension checks
against the FakeEngine (Euler-Maruyama).

Test Markers:
- @pytest.mark.slow - statistical checks over many paths
"""

import numpy as np
import pytest

from diffeqbridge import (
    ArgumentConflictError,
    DimensionMismatchError,
    ShapeMismatchError,
    sde_solve,
)


# ============================================================================
# Test SDEs
# ============================================================================


def gbm_drift(u, p, t):
    """Geometric Brownian motion drift: mu * u"""
    return 1.01 * u


def gbm_diffusion(u, p, t):
    """Geometric Brownian motion diffusion: sigma * u"""
    return 0.87 * u


def ou_drift(u, p, t):
    """Ornstein-Uhlenbeck drift: -theta * u"""
    theta = p[0]
    return -theta * u


def ou_diffusion(u, p, t):
    """Ornstein-Uhlenbeck diffusion: constant sigma"""
    sigma = p[1]
    return sigma * np.ones_like(u)


def ou_drift_inplace(du, u, p, t):
    du[0] = -p[0] * u[0]


def ou_diffusion_inplace(du, u, p, t):
    du[0] = p[1]


@pytest.fixture
def fixed_grid():
    return np.linspace(0.0, 1.0, 21)


# ============================================================================
# Trajectory Properties
# ============================================================================


class TestTrajectory:
    """Shape and grid properties of SDE solutions"""

    def test_lengths_match(self, engine):
        sol = sde_solve(gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), dt=0.01, seed=1, runtime=engine)
        assert len(sol.t) == len(sol.u)
        assert sol.t[0] == 0.0
        assert sol.t[-1] == pytest.approx(1.0)

    def test_state_shape_preserved(self, engine):
        sol = sde_solve(
            ou_drift, ou_diffusion, [1.0, -1.0], (0.0, 1.0), p=[1.0, 0.3], seed=3, runtime=engine
        )
        assert sol.u.shape == (len(sol.t), 2)

    def test_explicit_saveat(self, engine, fixed_grid):
        sol = sde_solve(
            gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), saveat=fixed_grid, seed=5, runtime=engine
        )
        np.testing.assert_array_equal(sol.t, fixed_grid)

    def test_different_seeds_same_grid_different_paths(self, engine, fixed_grid):
        a = sde_solve(
            gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), saveat=fixed_grid, seed=1, runtime=engine
        )
        b = sde_solve(
            gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), saveat=fixed_grid, seed=2, runtime=engine
        )
        np.testing.assert_array_equal(a.t, b.t)
        assert not np.allclose(a.u[1:], b.u[1:])

    def test_same_seed_reproducible(self, engine, fixed_grid):
        a = sde_solve(
            gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), saveat=fixed_grid, seed=7, runtime=engine
        )
        b = sde_solve(
            gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), saveat=fixed_grid, seed=7, runtime=engine
        )
        np.testing.assert_array_equal(a.u, b.u)

    def test_zero_diffusion_is_deterministic(self, engine):
        sol = sde_solve(
            gbm_drift,
            lambda u, p, t: np.zeros_like(u),
            [0.5],
            (0.0, 1.0),
            dt=1e-4,
            seed=0,
            runtime=engine,
        )
        # Euler with dt=1e-4 is first order
        assert sol.final_state[0] == pytest.approx(0.5 * np.exp(1.01), rel=1e-3)

    @pytest.mark.slow
    def test_ou_stationary_mean(self, engine):
        finals = [
            sde_solve(
                ou_drift,
                ou_diffusion,
                [2.0],
                (0.0, 5.0),
                p=[2.0, 0.5],
                dt=0.01,
                saveat=[5.0],
                seed=s,
                runtime=engine,
            ).final_state[0]
            for s in range(200)
        ]
        # Mean decays to 2 * exp(-10), stationary std 0.5 / sqrt(4) = 0.25
        assert abs(np.mean(finals)) < 0.1


# ============================================================================
# Options Forwarding
# ============================================================================


class TestOptions:
    """Seed, dt and algorithm reach the engine"""

    def test_seed_and_dt_forwarded(self, engine):
        sde_solve(gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), dt=0.05, seed=11, runtime=engine)
        kwargs = engine.solve_calls[-1]["kwargs"]
        assert kwargs["seed"] == 11
        assert kwargs["dt"] == 0.05

    def test_adaptive_forwarded(self, engine):
        sde_solve(
            gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), alg="EM", dt=0.01, adaptive=False,
            seed=0, runtime=engine,
        )
        assert engine.solve_calls[-1]["kwargs"]["adaptive"] is False

    def test_seed_omitted_when_not_given(self, engine):
        sde_solve(gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), runtime=engine)
        assert "seed" not in engine.solve_calls[-1]["kwargs"]

    def test_algorithm(self, engine):
        sde_solve(gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), alg="EM", dt=0.01, runtime=engine)
        (alg,) = engine.solve_calls[-1]["args"]
        assert alg.source == "EM()"

    def test_unknown_algorithm_propagates(self, engine, engine_error):
        with pytest.raises(engine_error):
            sde_solve(gbm_drift, gbm_diffusion, [0.5], (0.0, 1.0), alg="NoSuchSDE", runtime=engine)


# ============================================================================
# Function Forms
# ============================================================================


class TestFunctionForms:
    """Named and expression drift/diffusion"""

    def test_named_matches_expression(self, engine, fixed_grid):
        engine.define("ou_f!", ou_drift_inplace)
        engine.define("ou_g!", ou_diffusion_inplace)

        by_name = sde_solve(
            None,
            None,
            [1.0],
            (0.0, 1.0),
            p=[1.0, 0.3],
            saveat=fixed_grid,
            seed=4,
            fname="ou_f!",
            gname="ou_g!",
            runtime=engine,
        )
        by_expr = sde_solve(
            ou_drift,
            ou_diffusion,
            [1.0],
            (0.0, 1.0),
            p=[1.0, 0.3],
            saveat=fixed_grid,
            seed=4,
            runtime=engine,
        )
        np.testing.assert_allclose(by_name.u, by_expr.u, rtol=1e-12)

    def test_mixed_forms(self, engine):
        engine.define("ou_g!", ou_diffusion_inplace)
        sol = sde_solve(
            ou_drift, None, [1.0], (0.0, 1.0), p=[1.0, 0.3], gname="ou_g!", seed=0, runtime=engine
        )
        assert len(sol) > 1

    def test_diffusion_name_conflict(self, engine):
        engine.define("ou_g!", ou_diffusion_inplace)
        with pytest.raises(ArgumentConflictError, match="gname"):
            sde_solve(ou_drift, ou_diffusion, [1.0], (0.0, 1.0), gname="ou_g!", runtime=engine)

    def test_missing_diffusion(self, engine):
        with pytest.raises(ArgumentConflictError):
            sde_solve(ou_drift, None, [1.0], (0.0, 1.0), runtime=engine)


# ============================================================================
# Dimension Checks
# ============================================================================


class TestDimensions:
    """Drift/diffusion dimensions and non-diagonal noise"""

    def test_drift_diffusion_mismatch(self, engine):
        with pytest.raises(DimensionMismatchError):
            sde_solve(
                lambda u, p, t: -u,
                lambda u, p, t: np.ones(3),
                [1.0, 2.0],
                (0.0, 1.0),
                runtime=engine,
            )
        assert engine.solve_calls == []

    def test_drift_wrong_size(self, engine):
        with pytest.raises(DimensionMismatchError, match="Drift"):
            sde_solve(
                lambda u, p, t: np.ones(3),
                lambda u, p, t: np.ones(3),
                [1.0, 2.0],
                (0.0, 1.0),
                runtime=engine,
            )

    def test_inplace_diffusion_not_probed(self, engine):
        calls = []

        def g(du, u, p, t):
            calls.append(t)
            du[:] = 0.1

        sde_solve(lambda u, p, t: -u, g, [1.0], (0.0, 1.0), dt=0.1, seed=0, runtime=engine)
        # Only the engine's own calls, one per step
        assert len(calls) == 10

    def test_inplace_shape_mismatch_surfaces_lazily(self, engine):
        def bad_drift(du, u, p, t):
            du[5] = 1.0

        with pytest.raises(IndexError):
            sde_solve(bad_drift, lambda u, p, t: u, [1.0], (0.0, 1.0), runtime=engine)

    def test_non_diagonal_noise(self, engine):
        prototype = np.zeros((2, 3))

        def g(u, p, t):
            return np.full((2, 3), 0.1)

        sol = sde_solve(
            lambda u, p, t: -u,
            g,
            [1.0, 1.0],
            (0.0, 1.0),
            noise_rate_prototype=prototype,
            dt=0.01,
            seed=9,
            runtime=engine,
        )
        assert sol.u.shape[1:] == (2,)
        problem = engine.solve_calls[-1]["problem"]
        assert problem.noise_rate_prototype.shape == (2, 3)

    def test_non_diagonal_wrong_diffusion_shape(self, engine):
        with pytest.raises(DimensionMismatchError, match="noise_rate_prototype"):
            sde_solve(
                lambda u, p, t: -u,
                lambda u, p, t: np.ones((2, 2)),
                [1.0, 1.0],
                (0.0, 1.0),
                noise_rate_prototype=np.zeros((2, 3)),
                runtime=engine,
            )

    def test_bad_prototype_rows(self, engine):
        with pytest.raises(DimensionMismatchError):
            sde_solve(
                lambda u, p, t: -u,
                lambda u, p, t: np.ones((3, 1)),
                [1.0, 1.0],
                (0.0, 1.0),
                noise_rate_prototype=np.zeros((3, 1)),
                runtime=engine,
            )

    def test_lazy_diffusion_shape_error(self, engine):
        state = {"calls": 0}

        def g(u, p, t):
            # Correct at the probe, wrong afterwards
            state["calls"] += 1
            return u if state["calls"] == 1 else np.ones(4)

        with pytest.raises(ShapeMismatchError):
            sde_solve(lambda u, p, t: -u, g, [1.0], (0.0, 1.0), seed=0, runtime=engine)
