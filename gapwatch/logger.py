# gapwatch/logger.py
import asyncio
import aiofiles
from aiocsv import AsyncWriter
import logging
import sys
import os
from datetime import datetime, timezone
from typing import List, Any, Optional

from .models import Opportunity, SafetyVerdict, TradeRecord

AUDIT_HEADER = [
    "logged_at", "kind", "opportunity_id", "pair", "contract_address",
    "safe", "confidence", "tx_hash", "net_profit",
]

class AsyncAuditLogger:
    """
    Non-blocking CSV ledger of verdicts and simulated trades.
    Decouples disk I/O from the pipeline using an asyncio Queue.
    """
    def __init__(self, filepath: str):
        self.filepath = filepath
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None

    async def start(self):
        """
        Creates the ledger (with header if new) and starts the background writer.
        """
        directory = os.path.dirname(self.filepath)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

        if not os.path.exists(self.filepath) or os.path.getsize(self.filepath) == 0:
            async with aiofiles.open(self.filepath, mode='w', newline='') as f:
                writer = AsyncWriter(f, dialect='unix')
                await writer.writerow(AUDIT_HEADER)
        self._worker_task = asyncio.create_task(self._writer_worker())

    async def stop(self):
        """Flushes queued rows, then stops the writer."""
        if self._worker_task is None:
            return
        await self._queue.join()
        self._worker_task.cancel()
        try:
            await self._worker_task
        except asyncio.CancelledError:
            pass
        self._worker_task = None

    async def log_row(self, data: List[Any]):
        await self._queue.put(data)

    async def log_verdict(self, opp: Opportunity, verdict: SafetyVerdict):
        await self.log_row([
            _now_iso(), "verdict", opp.id, opp.pair, verdict.contract_address,
            verdict.safe, verdict.confidence, "", "",
        ])

    async def log_trade(self, opp: Opportunity, trade: TradeRecord):
        await self.log_row([
            _now_iso(), "trade", opp.id, opp.pair, opp.contract_address,
            True, "", trade.tx_hash, trade.net_profit,
        ])

    async def _writer_worker(self):
        while True:
            row = await self._queue.get()
            try:
                async with aiofiles.open(self.filepath, mode='a', newline='') as f:
                    writer = AsyncWriter(f, dialect='unix')
                    await writer.writerow(row)
            except Exception as e:
                # Fallback to stderr if disk I/O fails, don't crash the pipeline
                print(f"LOGGING FAILURE: {e}", file=sys.stderr)
            finally:
                self._queue.task_done()

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def setup_console_logger(name: str, level: str) -> logging.Logger:
    """
    Sets up the standard Python logger for console output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(module)s | %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
