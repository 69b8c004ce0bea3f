# gapwatch/execution.py
import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional

from .channel import EventChannel
from .models import LogEvent, Opportunity, TradeRecord, TradeTotals

AGENT = "Executor"

class TradeSimulator:
    """
    Plays out a flash-loan arbitrage as a series of timed phases and
    fabricates the result. Only ever called after a safe verdict.
    The running totals are the only state kept across calls and are
    handed out as snapshots, never by reference.
    """
    def __init__(self, config: dict, logger: logging.Logger,
                 rng: Optional[random.Random] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time,
                 failure_hook: Optional[Callable[[Opportunity], None]] = None):
        self.cfg = config['executor']
        self.logger = logger
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.clock = clock
        # Test hook: raise from here to simulate a failed execution
        self.failure_hook = failure_hook
        self.events = EventChannel("executor", logger)

        self._total_profit = 0.0
        self._trade_count = 0

    async def execute(self, opp: Opportunity) -> TradeRecord:
        started = self.clock()
        amount_in = self.cfg['amount_in']

        # 1. BUILD
        await self._log("Constructing flash loan transaction...")
        await self.sleep(self.rng.uniform(0.2, 0.5))

        # 2. BORROW
        await self._log(f"Flash borrowing {amount_in} units from {opp.buy_venue}...")
        await self.sleep(self.rng.uniform(self.cfg['min_delay'], self.cfg['max_delay']))

        if self.failure_hook:
            self.failure_hook(opp)

        # 3. SWAP LEGS
        await self._log(f"Swapping on {opp.buy_venue} (buy low)...")
        await self.sleep(self.rng.uniform(0.15, 0.35))
        await self._log(f"Swapping on {opp.sell_venue} (sell high)...")
        await self.sleep(self.rng.uniform(0.15, 0.35))

        profit = round(amount_in * opp.profit_percent / 100, 2)
        gas_cost = round(self.cfg['gas_cost'] * self.rng.uniform(0.8, 1.2), 4)
        net_profit = round(profit - gas_cost, 2)
        now = self.clock()

        record = TradeRecord(
            tx_hash=f"0x{self.rng.getrandbits(256):064x}",
            pair=opp.pair,
            buy_venue=opp.buy_venue,
            sell_venue=opp.sell_venue,
            amount_in=amount_in,
            amount_out=round(amount_in + profit, 2),
            profit=profit,
            gas_cost=gas_cost,
            net_profit=net_profit,
            execution_time_ms=int((now - started) * 1000),
            timestamp=now,
        )

        self._total_profit += net_profit
        self._trade_count += 1

        await self._log("Repaying flash loan... Transaction confirmed!")
        return record

    @property
    def total_profit(self) -> float:
        return round(self._total_profit, 2)

    @property
    def trade_count(self) -> int:
        return self._trade_count

    def totals(self) -> TradeTotals:
        return TradeTotals(total_profit=self.total_profit, trade_count=self._trade_count)

    async def _log(self, message: str):
        await self.events.publish(LogEvent(agent=AGENT, message=message, type="execution", timestamp=self.clock()))
