# main.py
import asyncio
import sys
import questionary
from rich.live import Live
from rich.console import Console

from gapwatch.config import load_config, ConfigError
from gapwatch.logger import setup_console_logger, AsyncAuditLogger
from gapwatch.gateway import BroadcastGateway
from gapwatch.price_feed import PriceFeedSimulator
from gapwatch.classifier import SafetyClassifier
from gapwatch.execution import TradeSimulator
from gapwatch.orchestrator import Orchestrator
from gapwatch.dashboard import DashboardState, generate_dashboard
from gapwatch.server import create_app, start_server

# --- UI HELPER FUNCTIONS ---

def startup_selection(config):
    """Interactive CLI to pick the pairs to watch and the classifier backend."""
    print("\n🛰️  GAP WATCH \n")
    pair_names = [p['name'] for p in config['scanner']['pairs']]
    pairs = questionary.checkbox("Select pairs to watch:", choices=pair_names, default=pair_names[0]).ask()
    if not pairs:
        print("No pairs selected. Exiting.")
        sys.exit()

    mode = questionary.select(
        "Safety classifier:",
        choices=["offline", "ai"],
        default=config['classifier']['mode'],
    ).ask()
    if mode is None:
        sys.exit()
    return pairs, mode

# --- MAIN CONTROLLER ---

class GapWatchBot:
    def __init__(self, config: dict):
        self.config = config
        self.logger = setup_console_logger("GapWatch", config['system']['log_level'])
        self.audit_log = AsyncAuditLogger(config['audit']['trade_log'])

        self.gateway = BroadcastGateway(self.logger)
        self.feed = PriceFeedSimulator(config, self.logger)
        self.classifier = SafetyClassifier(config, self.logger, api_key=config['classifier'].get('api_key'))
        self.executor = TradeSimulator(config, self.logger)
        self.orchestrator = Orchestrator(
            config, self.gateway, self.feed, self.classifier, self.executor,
            self.logger, audit_log=self.audit_log,
        )
        self.view = DashboardState()
        self.gateway.add_observer(self.view)

    async def run(self):
        runner = None
        try:
            await self.audit_log.start()
            app = create_app(self.orchestrator, self.gateway, self.logger)
            server_cfg = self.config['server']
            runner = await start_server(app, server_cfg['host'], server_cfg['port'])
            print(f"Server: http://localhost:{server_cfg['port']}  |  WebSocket: /ws")

            await self.orchestrator.start()

            dash_cfg = self.config['dashboard']
            if dash_cfg['enabled']:
                console = Console()
                with Live(console=console, refresh_per_second=4) as live:
                    while True:
                        live.update(generate_dashboard(self.view, dash_cfg['log_lines']))
                        await asyncio.sleep(0.25)
            else:
                await asyncio.Event().wait()
        finally:
            print("Shutting down resources...")
            await self.orchestrator.stop()
            await self.audit_log.stop()
            if runner:
                await runner.cleanup()

if __name__ == "__main__":
    try:
        raw_conf = load_config("config.yaml")
    except ConfigError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)
    try:
        sel_pairs, sel_mode = startup_selection(raw_conf)
        raw_conf['scanner']['pairs'] = [p for p in raw_conf['scanner']['pairs'] if p['name'] in sel_pairs]
        raw_conf['classifier']['mode'] = sel_mode
        if raw_conf['dashboard']['enabled']:
            # The dashboard is the console now; keep the logger for warnings only
            raw_conf['system']['log_level'] = "WARNING"
        bot = GapWatchBot(raw_conf)
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        print("\n🛑 Gap watcher stopped by user.")
        sys.exit()
