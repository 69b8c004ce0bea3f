# gapwatch/dashboard.py
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, Optional

from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

LOG_STYLES = {
    "system": "dim",
    "scan": "cyan",
    "opportunity": "bold yellow",
    "state": "magenta",
    "audit": "blue",
    "cache": "blue",
    "safe": "green",
    "scam": "bold red",
    "roast": "red",
    "execution": "yellow",
    "success": "bold green",
    "error": "bold white on red",
}

STATE_STYLES = {
    "IDLE": "dim",
    "AUDITING": "bold blue",
    "EXECUTING": "bold yellow",
    "ROASTING": "bold red",
    "SUCCESS": "bold green",
}

class DashboardState:
    """
    Gateway observer that keeps what the terminal dashboard shows:
    the latest stats, the last 200 log lines and the last 50 roasts.
    """
    def __init__(self, max_logs: int = 200, max_roasts: int = 50):
        self.logs: Deque[Dict] = deque(maxlen=max_logs)
        # Newest first
        self.roasts: Deque[Dict] = deque(maxlen=max_roasts)
        self.stats: Dict[str, Any] = {
            "scans_run": 0, "scams_dodged": 0, "trades_executed": 0,
            "total_profit": 0.0, "uptime": 0, "state": "IDLE",
        }
        self.system_state = "IDLE"
        self.last_trade: Optional[Dict] = None

    async def __call__(self, event: str, data: Any):
        if event == "log":
            self.logs.append(data)
        elif event == "stats-update":
            self.stats = dict(data)
            self.system_state = data["state"]
        elif event == "state-change":
            self.system_state = data["state"]
        elif event == "roast":
            self.roasts.appendleft(data)
        elif event == "trade-complete":
            self.last_trade = data

def _fmt_uptime(seconds: int) -> str:
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"

def generate_dashboard(state: DashboardState, log_lines: int = 18) -> Layout:
    """
    Builds the Rich layout: stats on the left, live terminal and roast gallery on the right.
    """
    # 1. Stats Table
    stats_table = Table(title="📊 Pipeline Stats", show_header=False)
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", justify="right")
    stats = state.stats
    style = STATE_STYLES.get(state.system_state, "white")
    stats_table.add_row("State", f"[{style}]{state.system_state}[/{style}]")
    stats_table.add_row("Scans", f"{stats['scans_run']:,}")
    stats_table.add_row("Scams dodged", f"[red]{stats['scams_dodged']}[/red]")
    stats_table.add_row("Trades", f"[green]{stats['trades_executed']}[/green]")
    stats_table.add_row("Total profit", f"[bold green]{stats['total_profit']:,.2f}[/bold green]")
    stats_table.add_row("Uptime", _fmt_uptime(stats['uptime']))
    if state.last_trade:
        stats_table.add_row("Last TX", f"{state.last_trade['tx_hash'][:14]}...")

    # 2. Terminal
    terminal = Text()
    for entry in list(state.logs)[-log_lines:]:
        ts = datetime.fromtimestamp(entry["timestamp"]).strftime("%H:%M:%S")
        terminal.append(f"{ts} ", style="dim")
        terminal.append(f"[{entry['agent']}] ", style="bold")
        terminal.append(f"{entry['message']}\n", style=LOG_STYLES.get(entry["type"], "white"))

    # 3. Roast Gallery
    roast_table = Table(title="🔥 Roast Gallery", expand=True)
    roast_table.add_column("Contract", style="magenta", no_wrap=True)
    roast_table.add_column("Conf.", justify="right")
    roast_table.add_column("Why", ratio=1)
    for roast in list(state.roasts)[:5]:
        addr = roast["contract_address"]
        roast_table.add_row(f"{addr[:6]}...{addr[-4:]}", f"{roast['confidence']}%", roast["rationale"])

    layout = Layout()
    layout.split_row(
        Layout(Panel(stats_table), name="left", ratio=1),
        Layout(name="right", ratio=3),
    )
    layout["right"].split_column(
        Layout(Panel(terminal, title="Live Terminal"), name="terminal"),
        Layout(Panel(roast_table), name="roasts"),
    )
    return layout
