"""Strategy registry — maps strategy names to classes.

Used by the orchestrator and the API layer to resolve a strategy key.
"""

import json
import pathlib
from enum import Enum
from typing import Optional

from primus.errors import UnknownStrategyError
from primus.strategy.base import StrategyProtocol
from primus.strategy.models import ROLES, ZoneLimits
from primus.strategy.scalping import ScalpingStrategy
from primus.strategy.swing import SwingStrategy


class StrategyKind(str, Enum):
    SWING = "swing"
    SCALPING = "scalping"


STRATEGY_REGISTRY: dict[str, type] = {
    StrategyKind.SWING.value: SwingStrategy,
    StrategyKind.SCALPING.value: ScalpingStrategy,
}

ZoneLimitOverrides = dict[str, dict[tuple[str, str], ZoneLimits]]


def available_strategies() -> list[str]:
    return list(STRATEGY_REGISTRY.keys())


def get_strategy(
    name: str,
    zone_limit_overrides: Optional[ZoneLimitOverrides] = None,
) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Raises ``UnknownStrategyError`` if the strategy name is not registered.
    """
    key = name.strip().lower() if isinstance(name, str) else name
    if key not in STRATEGY_REGISTRY:
        raise UnknownStrategyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    overrides = (zone_limit_overrides or {}).get(key)
    return STRATEGY_REGISTRY[key](zone_limit_overrides=overrides)


def load_zone_limit_overrides(path: Optional[str]) -> ZoneLimitOverrides:
    """Read zone-size cutoffs from a JSON file.

    Expected layout::

        {"swing": {"primary": {"forex": [20, 120], "gold": [50, 300]}}}

    Returns an empty dict when *path* is ``None``.  Raises ``ValueError``
    for unknown roles or malformed bounds.
    """
    if not path:
        return {}

    data = json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
    overrides: ZoneLimitOverrides = {}
    for strategy, roles in data.items():
        per_strategy: dict[tuple[str, str], ZoneLimits] = {}
        for role, classes in roles.items():
            if role not in ROLES:
                raise ValueError(f"Unknown role '{role}' in zone limits for {strategy}")
            for instrument, bounds in classes.items():
                if len(bounds) != 2 or float(bounds[0]) > float(bounds[1]):
                    raise ValueError(
                        f"Zone limits for {strategy}.{role}.{instrument} "
                        f"must be [min, max], got {bounds}"
                    )
                per_strategy[(role, instrument)] = ZoneLimits(
                    min_pips=float(bounds[0]), max_pips=float(bounds[1]),
                )
        overrides[strategy] = per_strategy
    return overrides
