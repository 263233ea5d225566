# arbbot/pairs.py
"""
Pair & Venue Registry
Static pair and venue configuration, loaded once from JSON at startup
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

VENUE_TYPE_API = "api"
VENUE_TYPE_ONCHAIN = "onchain"
VENUE_TYPES = (VENUE_TYPE_API, VENUE_TYPE_ONCHAIN)


# =============================================================================
# CONFIG ENTITIES
# =============================================================================

@dataclass(frozen=True)
class PairConfig:
    """A monitored token pair"""
    token_a: str
    token_b: str
    min_profit_percent: Decimal
    max_amount: Optional[Decimal] = None
    enabled: bool = True

    @property
    def key(self) -> Tuple[str, str]:
        return (self.token_a, self.token_b)

    @property
    def label(self) -> str:
        return f"{self.token_a}/{self.token_b}"


@dataclass(frozen=True)
class VenueConfig:
    """A trading venue (API aggregator or on-chain pool set)"""
    name: str
    type: str
    enabled: bool = True
    api_url: Optional[str] = None
    pools: Dict[str, str] = field(default_factory=dict)  # "A/B" -> pair address
    fee_bps: int = 0
    fee: Decimal = Decimal(0)
    address: Optional[str] = None

    def pool_for(self, token_a: str, token_b: str) -> Optional[str]:
        return self.pools.get(f"{token_a}/{token_b}") or self.pools.get(f"{token_b}/{token_a}")


# =============================================================================
# LOADERS
# =============================================================================

def _read_json_list(path: Path, what: str) -> list:
    path = Path(path)
    if not path.exists():
        raise RuntimeError(f"{what} file not found at {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise RuntimeError(f"Invalid {what} file {path}: expected a JSON array")
    return data


def _decimal(value) -> Decimal:
    return Decimal(str(value))


def parse_pair(raw: dict) -> PairConfig:
    try:
        token_a = raw["tokenA"]
        token_b = raw["tokenB"]
        min_profit = _decimal(raw["minProfitPercent"])
    except KeyError as e:
        raise RuntimeError(f"Pair entry missing {e.args[0]}: {raw}")

    if min_profit <= 0:
        raise RuntimeError(f"Pair {token_a}/{token_b}: minProfitPercent must be > 0")

    max_amount = raw.get("maxAmount")
    return PairConfig(
        token_a=token_a,
        token_b=token_b,
        min_profit_percent=min_profit,
        max_amount=_decimal(max_amount) if max_amount is not None else None,
        enabled=bool(raw.get("enabled", True)),
    )


def parse_venue(raw: dict) -> VenueConfig:
    try:
        name = raw["name"]
        venue_type = raw["type"]
    except KeyError as e:
        raise RuntimeError(f"Venue entry missing {e.args[0]}: {raw}")

    if venue_type not in VENUE_TYPES:
        raise RuntimeError(f"Venue {name}: unknown type {venue_type!r}")
    if venue_type == VENUE_TYPE_API and not raw.get("apiUrl"):
        raise RuntimeError(f"Venue {name}: apiUrl required for api venues")

    return VenueConfig(
        name=name,
        type=venue_type,
        enabled=bool(raw.get("enabled", True)),
        api_url=raw.get("apiUrl"),
        pools=dict(raw.get("pools", {})),
        fee_bps=int(raw.get("feeBps", 0)),
        fee=_decimal(raw.get("fee", 0)),
        address=raw.get("address"),
    )


def load_pairs(path: Path) -> List[PairConfig]:
    return [parse_pair(raw) for raw in _read_json_list(path, "pairs")]


def load_venues(path: Path) -> List[VenueConfig]:
    return [parse_venue(raw) for raw in _read_json_list(path, "venues")]


def enabled_pairs(pairs: List[PairConfig]) -> List[PairConfig]:
    return [p for p in pairs if p.enabled]


def enabled_venues(venues: List[VenueConfig]) -> List[VenueConfig]:
    return [v for v in venues if v.enabled]
