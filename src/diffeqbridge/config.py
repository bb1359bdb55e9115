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
Environment-driven configuration.

Variables
---------
DIFFEQBRIDGE_DEBUG
    "1" enables DEBUG logging of marshaling and solve steps.
DIFFEQBRIDGE_JULIA_MODULE
    Which diffeqpy module to load:
    - "de"  : full DifferentialEquations.jl (ODE + SDE, default)
    - "ode" : OrdinaryDiffEq.jl only (faster startup, no SDE support)

Examples
--------
>>> import os
>>> os.environ["DIFFEQBRIDGE_JULIA_MODULE"] = "ode"
>>> load_config().julia_module
'ode'
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from diffeqbridge.errors import InvalidOptionError

DEBUG_ENV = "DIFFEQBRIDGE_DEBUG"
JULIA_MODULE_ENV = "DIFFEQBRIDGE_JULIA_MODULE"

JULIA_MODULES = ("de", "ode")


@dataclass(frozen=True)
class BridgeConfig:
    """
    Process-wide settings for the Julia bridge.

    Attributes
    ----------
    debug : bool
        Verbose marshaling logs
    julia_module : str
        diffeqpy module name ('de' or 'ode')
    """

    debug: bool = False
    julia_module: str = "de"

    def __post_init__(self):
        if self.julia_module not in JULIA_MODULES:
            raise InvalidOptionError(
                f"Unknown Julia module '{self.julia_module}'. "
                f"Must be one of {list(JULIA_MODULES)}"
            )


def load_config(environ: Optional[Mapping[str, str]] = None) -> BridgeConfig:
    """Build a BridgeConfig from environment variables."""
    env = os.environ if environ is None else environ
    return BridgeConfig(
        debug=env.get(DEBUG_ENV, "0") == "1",
        julia_module=env.get(JULIA_MODULE_ENV, "de").strip().lower(),
    )


_config: Optional[BridgeConfig] = None


def get_config() -> BridgeConfig:
    """Return the cached process configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[BridgeConfig]) -> None:
    """Replace the cached configuration (None forces a reload)."""
    global _config
    _config = config
