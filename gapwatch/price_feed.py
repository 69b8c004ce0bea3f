# gapwatch/price_feed.py
import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional

from .channel import EventChannel
from .fixtures import CONTRACT_POOL
from .models import LogEvent, Opportunity, PriceObservation

AGENT = "Scanner"

class PriceFeedSimulator:
    """
    Synthetic two-venue price feed.
    Samples every `poll_interval` seconds and, every `opportunity_period`-th
    sample, pushes venue B up far enough to open a tradeable gap.
    Everything it produces goes out on `self.events`.
    """
    def __init__(self, config: dict, logger: logging.Logger,
                 rng: Optional[random.Random] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time,
                 contract_pool: Optional[List[str]] = None):
        self.cfg = config['scanner']
        self.logger = logger
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.clock = clock
        self.contract_pool = contract_pool or CONTRACT_POOL
        self.pairs: List[Dict] = self.cfg['pairs']
        self.events = EventChannel("price-feed", logger)

        self.scan_count = 0
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        if self.running:
            return
        self.running = True
        venues = ", ".join(sorted({p['venue_a'] for p in self.pairs} | {p['venue_b'] for p in self.pairs}))
        self._task = asyncio.create_task(self._run_forever(), name="price-feed")
        await self._log(f"Initializing price monitors on {venues}...", "system")

    async def stop(self):
        if not self.running:
            return
        self.running = False
        if self._task:
            task, self._task = self._task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._log("Scanner stopped.", "system")

    async def _run_forever(self):
        await self.sleep(self.cfg['connect_delay'])
        if not self.running:
            return
        names = ", ".join(p['name'] for p in self.pairs)
        await self._log(f"Connected to simulated venues. Monitoring {names}.", "system")
        while self.running:
            await self.sample()
            await self.sleep(self.cfg['poll_interval'])

    def _noise(self) -> float:
        return (self.rng.random() - 0.5) * 2 * self.cfg['noise']

    async def sample(self) -> List[Opportunity]:
        """
        Takes one sample of every configured pair.
        Returns the opportunities emitted (empty on a routine sample).
        """
        self.scan_count += 1
        boosted = self.scan_count % self.cfg['opportunity_period'] == 0
        found = []

        for pair in self.pairs:
            boost = self.rng.uniform(self.cfg['boost_min'], self.cfg['boost_max']) if boosted else 0.0
            price_a = round(pair['base_price_a'] + self._noise(), 4)
            price_b = round(pair['base_price_b'] + self._noise() + boost, 4)
            spread = round((price_b - price_a) / price_a * 100, 2)
            now = self.clock()

            await self.events.publish(PriceObservation(
                pair=pair['name'],
                venue_a=pair['venue_a'],
                venue_b=pair['venue_b'],
                price_a=price_a,
                price_b=price_b,
                spread=spread,
                timestamp=now,
            ))

            if abs(spread) > self.cfg['profit_threshold']:
                a_is_cheap = price_a < price_b
                opp = Opportunity(
                    id=f"opp-{self.scan_count}-{int(now * 1000)}",
                    pair=pair['name'],
                    buy_venue=pair['venue_a'] if a_is_cheap else pair['venue_b'],
                    sell_venue=pair['venue_b'] if a_is_cheap else pair['venue_a'],
                    buy_price=min(price_a, price_b),
                    sell_price=max(price_a, price_b),
                    profit_percent=abs(spread),
                    estimated_profit=round(abs(spread) * self.cfg['profit_haircut'], 2),
                    contract_address=self.rng.choice(self.contract_pool),
                    timestamp=now,
                )
                await self._log(
                    f"Price gap detected: {opp.pair} | {opp.profit_percent}% arb available "
                    f"({opp.buy_venue} -> {opp.sell_venue})",
                    "opportunity",
                )
                await self.events.publish(opp)
                found.append(opp)
            elif self.scan_count % self.cfg['log_every'] == 0:
                await self._log(
                    f"Scanning {pair['name']}... {pair['venue_a']}: ${price_a} | "
                    f"{pair['venue_b']}: ${price_b} | Spread: {spread}%",
                    "scan",
                )
        return found

    async def _log(self, message: str, kind: str):
        await self.events.publish(LogEvent(agent=AGENT, message=message, type=kind, timestamp=self.clock()))
