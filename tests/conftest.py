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
Shared fixtures: a pure-NumPy stand-in for the Julia engine.

FakeEngine satisfies SolverEngineProtocol so the whole marshaling contract
can be tested without Julia:

- evaluate() resolves names registered with define() and a small set of
  algorithm constructors; anything else raises FakeEngineError, mimicking
  Julia's UndefVarError.
- ODEs are integrated with classic RK4 on a uniform grid whose spacing
  shrinks with the tolerances.
- SDEs use Euler-Maruyama with numpy's default_rng(seed).
- Derivatives are always called in Julia's in-place convention
  f(du, u, p, t), exactly as the real engine does.
"""

import re

import numpy as np
import pytest

KNOWN_ALGORITHMS = {"Tsit5", "Vern9", "RK4", "Euler", "AutoTsit5", "Rosenbrock23", "EM", "SOSRI"}


class FakeEngineError(Exception):
    """Stands in for juliacall's JuliaError."""


class FakeAlgorithm:
    def __init__(self, source):
        self.source = source

    def __repr__(self):
        return f"FakeAlgorithm({self.source})"


class FakeODEProblem:
    def __init__(self, f, u0, tspan, p):
        self.f, self.u0, self.tspan, self.p = f, u0, tspan, p


class FakeSDEProblem:
    def __init__(self, f, g, u0, tspan, p, noise_rate_prototype=None):
        self.f, self.g, self.u0, self.tspan, self.p = f, g, u0, tspan, p
        self.noise_rate_prototype = noise_rate_prototype


class FakeSolution:
    def __init__(self, t, u, retcode="Success"):
        self.t = t
        self.u = u
        self.retcode = retcode


def _save_points(t0, t1, saveat, grid):
    """Times to record, following Julia's saveat semantics."""
    if saveat is None:
        return list(grid)
    if np.ndim(saveat) == 0:
        points = list(np.arange(t0, t1, float(saveat)))
        if not points or points[-1] < t1:
            points.append(t1)
        return points
    return [float(s) for s in saveat]


class FakeEngine:
    """In-process engine with RK4 (ODE) and Euler-Maruyama (SDE)."""

    no_parameters = None

    def __init__(self):
        self.functions = {}
        self.evaluated = []
        self.solve_calls = []

    # -- SolverEngineProtocol ------------------------------------------------

    def define(self, name, func):
        """Register an in-place function, like defining it in Julia."""
        self.functions[name] = func

    def evaluate(self, source):
        self.evaluated.append(source)
        if source in self.functions:
            return self.functions[source]

        match = re.fullmatch(r"([A-Za-z_][\w.]*)\((.*)\)", source.strip())
        if match and match.group(1) in KNOWN_ALGORITHMS:
            return FakeAlgorithm(source)
        raise FakeEngineError(f"UndefVarError: `{source}` not defined")

    def ode_problem(self, f, u0, tspan, p):
        return FakeODEProblem(f, u0, tspan, p)

    def sde_problem(self, f, g, u0, tspan, p, **kwargs):
        return FakeSDEProblem(f, g, u0, tspan, p, **kwargs)

    def solve(self, problem, *args, **kwargs):
        self.solve_calls.append({"problem": problem, "args": args, "kwargs": kwargs})
        if isinstance(problem, FakeSDEProblem):
            return self._solve_sde(problem, **kwargs)
        return self._solve_ode(problem, **kwargs)

    # -- numerics ------------------------------------------------------------

    @staticmethod
    def _grid(t0, t1, h, saveat):
        if t1 == t0:
            base = np.array([t0])
        else:
            n = max(1, int(np.ceil((t1 - t0) / h)))
            base = np.linspace(t0, t1, n + 1)
        save = _save_points(t0, t1, saveat, base)
        merged = np.unique(np.concatenate([base, np.asarray(save, dtype=float)]))
        return merged, save

    def _solve_ode(self, problem, abstol=1e-6, reltol=1e-3, saveat=None, dt=None, **_):
        t0, t1 = problem.tspan
        h = dt if dt is not None else 0.5 * min(abstol, reltol) ** 0.2
        grid, save = self._grid(t0, t1, h, saveat)

        f, p = problem.f, problem.p

        def rhs(u, t):
            du = np.zeros_like(u)
            f(du, u.copy(), p, t)
            return du

        u = np.array(problem.u0, dtype=float)
        states = {}
        for i, t in enumerate(grid):
            states[float(t)] = u.copy()
            if i + 1 == len(grid):
                break
            step = grid[i + 1] - t
            k1 = rhs(u, t)
            k2 = rhs(u + 0.5 * step * k1, t + 0.5 * step)
            k3 = rhs(u + 0.5 * step * k2, t + 0.5 * step)
            k4 = rhs(u + step * k3, t + step)
            u = u + step / 6.0 * (k1 + 2 * k2 + 2 * k3 + k4)

        return FakeSolution(t=list(save), u=[states[float(s)] for s in save])

    def _solve_sde(self, problem, saveat=None, dt=None, seed=None, **_):
        t0, t1 = problem.tspan
        h = dt if dt is not None else (t1 - t0) / 100 if t1 > t0 else 1.0
        grid, save = self._grid(t0, t1, h, saveat)
        rng = np.random.default_rng(seed)

        f, g, p = problem.f, problem.g, problem.p
        prototype = problem.noise_rate_prototype

        u = np.array(problem.u0, dtype=float)
        states = {}
        for i, t in enumerate(grid):
            states[float(t)] = u.copy()
            if i + 1 == len(grid):
                break
            step = grid[i + 1] - t

            drift = np.zeros_like(u)
            f(drift, u.copy(), p, t)

            if prototype is None:
                noise = np.zeros_like(u)
                g(noise, u.copy(), p, t)
                dW = rng.normal(0.0, np.sqrt(step), size=u.shape)
                u = u + drift * step + noise * dW
            else:
                noise = np.zeros_like(prototype)
                g(noise, u.copy(), p, t)
                dW = rng.normal(0.0, np.sqrt(step), size=prototype.shape[1])
                u = u + drift * step + noise @ dW

        return FakeSolution(t=list(save), u=[states[float(s)] for s in save])


@pytest.fixture
def engine():
    """Fresh FakeEngine per test."""
    return FakeEngine()


@pytest.fixture
def engine_error():
    """Exception type FakeEngine raises for unknown names."""
    return FakeEngineError


@pytest.fixture(autouse=True)
def _isolate_runtime():
    """Never leak a cached runtime or config between tests."""
    from diffeqbridge.bridge import reset_runtime
    from diffeqbridge.config import set_config

    reset_runtime()
    set_config(None)
    yield
    reset_runtime()
    set_config(None)
