# gapwatch/orchestrator.py
import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, List, Optional, Set

from .classifier import SafetyClassifier
from .execution import TradeSimulator
from .gateway import BroadcastGateway
from .logger import AsyncAuditLogger
from .models import (
    AggregateStats, LogEvent, Opportunity, PipelineState, PriceObservation, RoastEntry,
)
from .price_feed import PriceFeedSimulator
from .scheduler import PeriodicTask

AGENT = "Orchestrator"

class Orchestrator:
    """
    The pipeline state machine.

        IDLE -> AUDITING -> EXECUTING -> SUCCESS -> IDLE
                         -> ROASTING -------------> IDLE

    Only one pipeline run is admitted at a time; opportunities that arrive
    while one is in flight are dropped, not queued. Every stats mutation is
    followed by a `stats-update` broadcast of the same snapshot, so
    `get_stats()` always matches what observers last received.
    """
    def __init__(self, config: dict, gateway: BroadcastGateway,
                 feed: PriceFeedSimulator, classifier: SafetyClassifier,
                 executor: TradeSimulator, logger: logging.Logger,
                 audit_log: Optional[AsyncAuditLogger] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time):
        self.cfg = config['orchestrator']
        self.gateway = gateway
        self.feed = feed
        self.classifier = classifier
        self.executor = executor
        self.logger = logger
        self.audit_log = audit_log
        self.sleep = sleep
        self.clock = clock

        self.stats = AggregateStats()
        self.roasts: Deque[RoastEntry] = deque(maxlen=self.cfg['roast_history'])
        self.processing = False
        self.start_time = self.clock()
        self._pipelines: Set[asyncio.Task] = set()
        self._stats_task = PeriodicTask(
            "stats-broadcast", self.cfg['stats_interval'], self._tick_stats, logger, sleep=sleep,
        )

        self._wire_events()

    @property
    def state(self) -> PipelineState:
        return self.stats.state

    def _wire_events(self):
        self.feed.events.subscribe(self._on_feed_event)
        self.classifier.events.subscribe(self._on_agent_log)
        self.executor.events.subscribe(self._on_agent_log)

    async def _on_feed_event(self, event: Any):
        if isinstance(event, LogEvent):
            await self.broadcast_log(event)
        elif isinstance(event, PriceObservation):
            await self._update_stats(scans_run=self.stats.scans_run + 1)
        elif isinstance(event, Opportunity):
            # Run in the background so the sampler keeps its cadence
            task = asyncio.create_task(self.handle_opportunity(event))
            self._pipelines.add(task)
            task.add_done_callback(self._pipelines.discard)

    async def _on_agent_log(self, event: Any):
        if isinstance(event, LogEvent):
            await self.broadcast_log(event)

    async def handle_opportunity(self, opp: Opportunity) -> bool:
        """
        Runs one full pipeline for `opp`.
        Returns False when the opportunity was dropped because a run is in flight.
        """
        if self.processing:
            await self._log("Pipeline busy, skipping opportunity.", "system")
            return False
        self.processing = True

        try:
            await self._set_state(PipelineState.AUDITING)
            await self._log(
                f"Opportunity received! {opp.pair} | {opp.profit_percent}% gap. Initiating vibe check...",
                "state",
            )

            verdict = await self.classifier.audit(opp.contract_address)
            if self.audit_log:
                await self.audit_log.log_verdict(opp, verdict)
            await self.gateway.broadcast("verdict", {**verdict.to_dict(), "opportunity": opp.to_dict()})

            if verdict.safe:
                await self.broadcast_log(LogEvent(
                    agent="Vibe",
                    message=f"SAFE | Confidence: {verdict.confidence}% | {verdict.rationale}",
                    type="safe",
                    timestamp=self.clock(),
                ))
                await self._set_state(PipelineState.EXECUTING)
                await self._log("Vibe check passed. Deploying Executor...", "state")

                trade = await self.executor.execute(opp)

                await self._set_state(PipelineState.SUCCESS)
                await self._update_stats(
                    trades_executed=self.stats.trades_executed + 1,
                    total_profit=self.executor.total_profit,
                )
                await self.broadcast_log(LogEvent(
                    agent="System",
                    message=f"SUCCESS: Printed {trade.net_profit} in {trade.execution_time_ms / 1000:.1f}s "
                            f"| TX: {trade.tx_hash[:14]}...",
                    type="success",
                    timestamp=self.clock(),
                ))
                if self.audit_log:
                    await self.audit_log.log_trade(opp, trade)
                await self.gateway.broadcast("trade-complete", trade)
            else:
                await self._set_state(PipelineState.ROASTING)
                await self._update_stats(scams_dodged=self.stats.scams_dodged + 1)
                threats = ", ".join(verdict.threats) or "none listed"
                await self.broadcast_log(LogEvent(
                    agent="Vibe",
                    message=f"SCAM DETECTED | Confidence: {verdict.confidence}% | Threats: {threats}",
                    type="scam",
                    timestamp=self.clock(),
                ))
                await self.broadcast_log(LogEvent(
                    agent="Vibe", message=verdict.rationale, type="roast", timestamp=self.clock(),
                ))
                entry = RoastEntry(
                    contract_address=opp.contract_address,
                    rationale=verdict.rationale,
                    confidence=verdict.confidence,
                    timestamp=self.clock(),
                )
                self.roasts.append(entry)
                await self.gateway.broadcast("roast", entry)

            await self.sleep(self.cfg['settle_delay'])
            await self._set_state(PipelineState.IDLE)
        except Exception as e:
            self.logger.exception(f"Pipeline error on {opp.id}")
            await self._log(f"Pipeline error: {e}", "error")
            await self._set_state(PipelineState.IDLE)
        finally:
            self.processing = False
        return True

    async def start(self):
        self.start_time = self.clock()
        await self._log("Gap watcher online. All agents initialized.", "system")
        await self._log("State machine: IDLE -> Waiting for price gaps...", "system")
        await self.feed.start()
        self._stats_task.start()

    async def stop(self):
        """
        Stops sampling and the stats ticker. An in-flight pipeline run is
        allowed to finish rather than being cancelled.
        """
        await self.feed.stop()
        await self._stats_task.stop()
        if self._pipelines:
            await asyncio.gather(*self._pipelines, return_exceptions=True)
        await self._set_state(PipelineState.IDLE)
        await self._log("Gap watcher shutting down. All agents stopped.", "system")

    async def _tick_stats(self):
        await self._update_stats()

    async def _update_stats(self, **changes):
        for key, value in changes.items():
            setattr(self.stats, key, value)
        self.stats.uptime = int(self.clock() - self.start_time)
        await self.gateway.broadcast("stats-update", self.stats.copy())

    async def _set_state(self, new_state: PipelineState):
        await self._update_stats(state=new_state)
        await self.gateway.broadcast("state-change", {"state": new_state.value})

    async def broadcast_log(self, event: LogEvent):
        self.logger.info(f"[{event.agent}] {event.message}")
        await self.gateway.broadcast("log", event)

    async def _log(self, message: str, kind: str):
        await self.broadcast_log(LogEvent(agent=AGENT, message=message, type=kind, timestamp=self.clock()))

    def get_stats(self) -> AggregateStats:
        return self.stats.copy()

    def get_roasts(self) -> List[RoastEntry]:
        return list(self.roasts)
