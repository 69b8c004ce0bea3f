import asyncio
import random

import pytest

from gapwatch.classifier import SafetyClassifier
from gapwatch.execution import TradeSimulator
from gapwatch.fixtures import SAFE_CONTRACTS, SCAM_CONTRACTS
from gapwatch.gateway import BroadcastGateway
from gapwatch.models import Opportunity, PipelineState
from gapwatch.orchestrator import Orchestrator
from gapwatch.price_feed import PriceFeedSimulator

SAFE = SAFE_CONTRACTS[0].address
SCAM = SCAM_CONTRACTS[1].address

class SpyExecutor(TradeSimulator):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.records = []

    async def execute(self, opp):
        record = await super().execute(opp)
        self.records.append(record)
        return record

def opportunity(contract, n=1, profit_percent=3.2):
    return Opportunity(
        id=f"opp-{n}", pair="MON/USDC", buy_venue="Kuru", sell_venue="MockDex",
        buy_price=1.0, sell_price=1.032, profit_percent=profit_percent,
        estimated_profit=round(profit_percent * 0.75, 2), contract_address=contract, timestamp=1_000.0 + n,
    )

@pytest.fixture
def pipeline(config, logger, clock, fast_sleep, fixed_random, recorder):
    gateway = BroadcastGateway(logger)
    gateway.add_observer(recorder)
    feed = PriceFeedSimulator(config, logger, rng=fixed_random(0.5), sleep=fast_sleep, clock=clock,
                              contract_pool=[SAFE])
    classifier = SafetyClassifier(config, logger, rng=random.Random(5), sleep=fast_sleep, clock=clock)
    executor = SpyExecutor(config, logger, rng=random.Random(9), sleep=fast_sleep, clock=clock)
    orch = Orchestrator(config, gateway, feed, classifier, executor, logger, sleep=fast_sleep, clock=clock)
    return orch

def states(recorder):
    return [d["state"] for d in recorder.named("state-change")]

@pytest.mark.asyncio
async def test_unsafe_verdict_never_trades(pipeline, recorder):
    before = pipeline.get_stats()

    assert await pipeline.handle_opportunity(opportunity(SCAM)) is True

    after = pipeline.get_stats()
    assert pipeline.executor.records == []
    assert after.scams_dodged == before.scams_dodged + 1
    assert after.trades_executed == 0
    assert states(recorder) == ["AUDITING", "ROASTING", "IDLE"]
    assert recorder.named("trade-complete") == []

    roast = recorder.last("roast")
    assert roast["contract_address"] == SCAM
    assert pipeline.get_roasts()[0].rationale == roast["rationale"]
    verdict = recorder.last("verdict")
    assert verdict["safe"] is False and verdict["opportunity"]["id"] == "opp-1"

@pytest.mark.asyncio
async def test_safe_verdict_trades_exactly_once(pipeline, recorder):
    before = pipeline.get_stats()

    await pipeline.handle_opportunity(opportunity(SAFE))

    after = pipeline.get_stats()
    assert len(pipeline.executor.records) == 1
    record = pipeline.executor.records[0]
    assert after.trades_executed == before.trades_executed + 1
    assert after.total_profit == round(before.total_profit + record.net_profit, 2)
    assert after.scams_dodged == 0
    assert states(recorder) == ["AUDITING", "EXECUTING", "SUCCESS", "IDLE"]
    assert recorder.last("trade-complete")["tx_hash"] == record.tx_hash
    assert pipeline.state is PipelineState.IDLE

@pytest.mark.asyncio
async def test_total_profit_tracks_executor(pipeline):
    for n in range(3):
        await pipeline.handle_opportunity(opportunity(SAFE, n=n, profit_percent=2.5 + n))

    net = sum(r.net_profit for r in pipeline.executor.records)
    assert pipeline.get_stats().trades_executed == 3
    assert pipeline.get_stats().total_profit == round(net, 2) == pipeline.executor.total_profit

@pytest.mark.asyncio
async def test_concurrent_opportunities_are_dropped(pipeline, recorder):
    results = await asyncio.gather(
        pipeline.handle_opportunity(opportunity(SAFE, n=1)),
        pipeline.handle_opportunity(opportunity(SCAM, n=2)),
        pipeline.handle_opportunity(opportunity(SAFE, n=3)),
    )

    assert results == [True, False, False]
    stats = pipeline.get_stats()
    assert stats.trades_executed + stats.scams_dodged == 1
    assert len(pipeline.executor.records) == 1
    busy = [d for d in recorder.named("log") if d["message"].startswith("Pipeline busy")]
    assert len(busy) == 2
    assert pipeline.processing is False

@pytest.mark.asyncio
async def test_pipeline_admits_again_after_idle(pipeline):
    await pipeline.handle_opportunity(opportunity(SAFE, n=1))
    await pipeline.handle_opportunity(opportunity(SCAM, n=2))

    stats = pipeline.get_stats()
    assert (stats.trades_executed, stats.scams_dodged) == (1, 1)

@pytest.mark.asyncio
async def test_stats_snapshot_matches_last_broadcast(pipeline, recorder, clock):
    await pipeline.handle_opportunity(opportunity(SAFE))
    assert pipeline.get_stats().to_dict() == recorder.last("stats-update")

    clock.advance(12)
    await pipeline._tick_stats()
    snapshot = pipeline.get_stats().to_dict()
    assert snapshot == recorder.last("stats-update")
    assert snapshot["uptime"] == 12

@pytest.mark.asyncio
async def test_stats_agree_during_state_change(pipeline, recorder):
    mismatches = []

    async def check(event, data):
        if event == "state-change":
            current = pipeline.get_stats().to_dict()
            if current != recorder.last("stats-update") or current["state"] != data["state"]:
                mismatches.append((data["state"], recorder.last("stats-update")))

    pipeline.gateway.add_observer(check)
    await pipeline.handle_opportunity(opportunity(SCAM))
    await pipeline.handle_opportunity(opportunity(SAFE, n=2))

    assert len(states(recorder)) == 7
    assert mismatches == []

@pytest.mark.asyncio
async def test_snapshot_is_a_copy(pipeline):
    snapshot = pipeline.get_stats()
    snapshot.trades_executed = 99
    pipeline.get_roasts().append("junk")

    assert pipeline.get_stats().trades_executed == 0
    assert pipeline.get_roasts() == []

@pytest.mark.asyncio
async def test_pipeline_error_returns_to_idle(pipeline, recorder):
    async def broken_audit(address):
        raise RuntimeError("classifier exploded")

    pipeline.classifier.audit = broken_audit

    assert await pipeline.handle_opportunity(opportunity(SAFE)) is True

    assert pipeline.state is PipelineState.IDLE
    assert pipeline.processing is False
    assert states(recorder) == ["AUDITING", "IDLE"]
    errors = [d for d in recorder.named("log") if d["type"] == "error"]
    assert errors and "classifier exploded" in errors[0]["message"]

@pytest.mark.asyncio
async def test_roast_log_is_bounded(config, logger, clock, fast_sleep):
    config['orchestrator']['roast_history'] = 2
    gateway = BroadcastGateway(logger)
    feed = PriceFeedSimulator(config, logger, sleep=fast_sleep, clock=clock)
    classifier = SafetyClassifier(config, logger, sleep=fast_sleep, clock=clock)
    executor = TradeSimulator(config, logger, sleep=fast_sleep, clock=clock)
    orch = Orchestrator(config, gateway, feed, classifier, executor, logger, sleep=fast_sleep, clock=clock)

    for n, contract in enumerate(c.address for c in SCAM_CONTRACTS):
        await orch.handle_opportunity(opportunity(contract, n=n))

    roasts = orch.get_roasts()
    assert [r.contract_address for r in roasts] == [c.address for c in SCAM_CONTRACTS[1:]]
    assert orch.get_stats().scams_dodged == 3

@pytest.mark.asyncio
async def test_feed_opportunity_drives_pipeline(pipeline, recorder):
    for _ in range(8):
        await pipeline.feed.sample()
    # Waits for the background pipeline run started by the eighth sample
    await pipeline.stop()

    stats = pipeline.get_stats()
    assert stats.scans_run == 8
    assert stats.trades_executed == 1
    assert any("Price gap detected" in d["message"] for d in recorder.named("log"))

@pytest.mark.asyncio
async def test_start_and_stop_lifecycle(config, logger, recorder):
    gateway = BroadcastGateway(logger)
    gateway.add_observer(recorder)
    feed = PriceFeedSimulator(config, logger)
    classifier = SafetyClassifier(config, logger)
    executor = TradeSimulator(config, logger)
    orch = Orchestrator(config, gateway, feed, classifier, executor, logger)

    await orch.start()
    await asyncio.sleep(0.1)
    await orch.stop()

    messages = [d["message"] for d in recorder.named("log")]
    assert messages[0].startswith("Gap watcher online")
    assert messages[-1].startswith("Gap watcher shutting down")
    assert "Scanner stopped." in messages
    assert orch.get_stats().scans_run > 0
    assert orch.state is PipelineState.IDLE
    assert len(recorder.named("stats-update")) > 1
    assert orch.get_stats().to_dict() == recorder.last("stats-update")
