# gapwatch/models.py
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import List
import time

class PipelineState(Enum):
    """
    Enum representing the lifecycle states of the coordinator.
    """
    IDLE = "IDLE"
    AUDITING = "AUDITING"
    EXECUTING = "EXECUTING"
    ROASTING = "ROASTING"
    SUCCESS = "SUCCESS"

class _Record:
    """Mixin giving every record a JSON-friendly dict form for the wire."""
    __slots__ = ()

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

@dataclass(slots=True)
class LogEvent(_Record):
    """Human-readable progress line emitted by every component."""
    agent: str
    message: str
    type: str
    timestamp: float = field(default_factory=time.time)

@dataclass(slots=True)
class PriceObservation(_Record):
    """
    One synthetic sample of a pair on two venues.
    Published once and never retained.
    """
    pair: str
    venue_a: str
    venue_b: str
    price_a: float
    price_b: float
    spread: float
    timestamp: float

@dataclass(slots=True)
class Opportunity(_Record):
    """
    A price gap wide enough to be worth a safety check and a simulated trade.
    """
    id: str
    pair: str
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    profit_percent: float
    estimated_profit: float
    contract_address: str
    timestamp: float

@dataclass(slots=True)
class SafetyVerdict(_Record):
    contract_address: str
    safe: bool
    confidence: int
    threats: List[str]
    rationale: str
    cached: bool
    audit_time_ms: int
    timestamp: float

    def as_cached(self) -> "SafetyVerdict":
        """Copy of this verdict flagged as served from cache."""
        return replace(self, threats=list(self.threats), cached=True)

@dataclass(slots=True, frozen=True)
class TradeRecord(_Record):
    """
    Fabricated execution result. Never mutated after creation.
    """
    tx_hash: str
    pair: str
    buy_venue: str
    sell_venue: str
    amount_in: float
    amount_out: float
    profit: float
    gas_cost: float
    net_profit: float
    execution_time_ms: int
    timestamp: float

@dataclass(slots=True, frozen=True)
class TradeTotals(_Record):
    total_profit: float
    trade_count: int

@dataclass(slots=True)
class AggregateStats(_Record):
    """
    Running counters owned by the Orchestrator.
    Observers only ever receive copies.
    """
    scans_run: int = 0
    scams_dodged: int = 0
    trades_executed: int = 0
    total_profit: float = 0.0
    uptime: int = 0
    state: PipelineState = PipelineState.IDLE

    def copy(self) -> "AggregateStats":
        return replace(self)

@dataclass(slots=True)
class RoastEntry(_Record):
    contract_address: str
    rationale: str
    confidence: int
    timestamp: float
