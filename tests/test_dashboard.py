import io

import pytest
from rich.console import Console

from gapwatch.dashboard import DashboardState, generate_dashboard

@pytest.mark.asyncio
async def test_state_tracks_broadcasts():
    view = DashboardState(max_logs=3, max_roasts=2)

    for n in range(5):
        await view("log", {"agent": "Scanner", "message": f"line {n}", "type": "scan", "timestamp": 1.0})
    for n in range(3):
        await view("roast", {"contract_address": f"0x{n:040x}", "rationale": "bad", "confidence": 90, "timestamp": 1.0})
    await view("state-change", {"state": "EXECUTING"})
    await view("trade-complete", {"tx_hash": "0x" + "1" * 64})

    assert [log["message"] for log in view.logs] == ["line 2", "line 3", "line 4"]
    # Newest roast first, oldest dropped
    assert [r["contract_address"][-1] for r in view.roasts] == ["2", "1"]
    assert view.system_state == "EXECUTING"
    assert view.last_trade["tx_hash"].startswith("0x1")

    stats = {"scans_run": 40, "scams_dodged": 2, "trades_executed": 3,
             "total_profit": 81.5, "uptime": 3725, "state": "IDLE"}
    await view("stats-update", stats)
    assert view.stats == stats
    assert view.system_state == "IDLE"

@pytest.mark.asyncio
async def test_dashboard_renders():
    view = DashboardState()
    await view("log", {"agent": "Vibe", "message": "SCAM DETECTED", "type": "scam", "timestamp": 1_700_000_000.0})
    await view("roast", {"contract_address": "0xDEAD000000000000000000000000000000001337",
                         "rationale": "Sell is locked.", "confidence": 95, "timestamp": 1.0})

    console = Console(file=io.StringIO(), width=140, height=40, record=True)
    console.print(generate_dashboard(view))
    text = console.export_text()

    assert "Pipeline Stats" in text
    assert "SCAM DETECTED" in text
    assert "0xDEAD...1337" in text
