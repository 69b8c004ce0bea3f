# gapwatch/classifier.py
import asyncio
import json
import logging
import random
import time
from typing import Any, Awaitable, Callable, Optional

from openai import AsyncOpenAI

from .cache import TTLCache
from .channel import EventChannel
from .fixtures import (
    SAFE_RATIONALES, SOURCE_UNAVAILABLE, SYSTEM_PROMPT, UNKNOWN_SAFE_RATIONALE,
    UNKNOWN_UNSAFE_RATIONALE, UNKNOWN_UNSAFE_THREATS, find_fixture, is_safe_fixture,
    scam_verdict_for,
)
from .models import LogEvent, SafetyVerdict

AGENT = "Vibe"
PLACEHOLDER_KEYS = {"", "your_openai_api_key_here"}
PARSE_FALLBACK = "Unable to parse classifier response."

class ClassifierError(Exception):
    """The external classifier returned something that is not a verdict."""

def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"

def parse_verdict_payload(content: Optional[str]) -> dict:
    """
    Parses the model's JSON answer field by field.
    Missing or mistyped fields fall back to conservative defaults;
    anything that is not a JSON object raises ClassifierError.
    """
    try:
        parsed = json.loads(content or "{}")
    except (TypeError, ValueError) as e:
        raise ClassifierError(f"non-JSON response: {e}") from e
    if not isinstance(parsed, dict):
        raise ClassifierError(f"expected a JSON object, got {type(parsed).__name__}")

    try:
        confidence = int(parsed.get("confidence", 50))
    except (TypeError, ValueError, OverflowError):
        confidence = 50
    threats = parsed.get("threats", [])
    if not isinstance(threats, list):
        threats = []
    rationale = parsed.get("roast")
    if not isinstance(rationale, str) or not rationale:
        rationale = PARSE_FALLBACK

    return {
        "safe": parsed.get("safe") is True,
        "confidence": max(0, min(100, confidence)),
        "threats": [str(t) for t in threats],
        "rationale": rationale,
    }

class SafetyClassifier:
    """
    Decides whether the contract behind an opportunity is safe to touch.
    Verdicts come either from one chat-completions call or from the offline
    fixture tables, and are cached per contract for `cache_ttl` seconds.
    Failures never escape `audit`: they become an unsafe verdict.
    """
    def __init__(self, config: dict, logger: logging.Logger,
                 client: Optional[Any] = None,
                 api_key: Optional[str] = None,
                 rng: Optional[random.Random] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time):
        self.cfg = config['classifier']
        self.logger = logger
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.clock = clock
        self.cache = TTLCache(self.cfg['cache_ttl'], clock=clock)
        self.events = EventChannel("classifier", logger)
        self.external_calls = 0

        self.client = client
        self.mode = self.cfg['mode']
        if self.mode == "ai" and self.client is None:
            if (api_key or "") in PLACEHOLDER_KEYS:
                self.logger.warning("No OpenAI API key configured. Classifier running offline on fixture verdicts.")
                self.mode = "offline"
            else:
                self.client = AsyncOpenAI(api_key=api_key)
        if self.mode == "ai":
            self.logger.info(f"AI auditor online ({self.cfg['model']}).")

    async def audit(self, contract_address: str) -> SafetyVerdict:
        verdict, hit = await self.cache.get_or_compute(
            contract_address, lambda: self._fresh_audit(contract_address))
        if hit:
            await self._log(f"Cache hit for {short_address(contract_address)}. Returning stored verdict.", "cache")
            return verdict.as_cached()
        return verdict

    async def _fresh_audit(self, contract_address: str) -> SafetyVerdict:
        await self._log(f"Fetching contract source for {short_address(contract_address)}...", "audit")
        await self.sleep(self.rng.uniform(self.cfg['fetch_delay_min'], self.cfg['fetch_delay_max']))
        source = self.get_contract_source(contract_address)

        await self._log(f"Running security audit on {short_address(contract_address)}...", "audit")
        started = self.clock()
        if self.mode == "ai":
            return await self._audit_with_ai(contract_address, source, started)
        return await self._audit_offline(contract_address, started)

    def get_contract_source(self, contract_address: str) -> str:
        fixture = find_fixture(contract_address)
        if fixture:
            return fixture.code
        return SOURCE_UNAVAILABLE.format(address=contract_address)

    async def _audit_with_ai(self, contract_address: str, source: str, started: float) -> SafetyVerdict:
        try:
            self.external_calls += 1
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.cfg['model'],
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": f"Audit this smart contract at address {contract_address}:\n\n"
                                       f"```solidity\n{source}\n```",
                        },
                    ],
                    temperature=self.cfg['temperature'],
                    max_tokens=self.cfg['max_tokens'],
                    response_format={"type": "json_object"},
                ),
                timeout=self.cfg['request_timeout'],
            )
            content = response.choices[0].message.content if response.choices else None
            fields = parse_verdict_payload(content)
        except asyncio.TimeoutError:
            return await self._fail_safe(
                contract_address, started,
                f"classifier timed out after {self.cfg['request_timeout']}s",
            )
        except Exception as e:
            return await self._fail_safe(contract_address, started, str(e))

        return self._verdict(contract_address, started, **fields)

    async def _fail_safe(self, contract_address: str, started: float, reason: str) -> SafetyVerdict:
        self.logger.error(f"Classifier failure for {contract_address}: {reason}")
        await self._log(f"AI API error: {reason}. Treating contract as unsafe.", "error")
        return self._verdict(
            contract_address, started,
            safe=False,
            confidence=0,
            threats=["error"],
            rationale=f"Audit could not be completed ({reason}). Refusing to trade on an unverified contract.",
        )

    async def _audit_offline(self, contract_address: str, started: float) -> SafetyVerdict:
        await self.sleep(self.rng.uniform(self.cfg['think_delay_min'], self.cfg['think_delay_max']))
        fixture = find_fixture(contract_address)

        if fixture and is_safe_fixture(contract_address):
            return self._verdict(
                contract_address, started,
                safe=True,
                confidence=88 + self.rng.randrange(10),
                threats=[],
                rationale=self.rng.choice(SAFE_RATIONALES).format(name=fixture.name),
            )

        if fixture:
            scam = scam_verdict_for(fixture.name)
            return self._verdict(
                contract_address, started,
                safe=False,
                confidence=90 + self.rng.randrange(8),
                threats=list(scam['threats']),
                rationale=scam['rationale'],
            )

        # Unknown contract: coin flip weighted towards safe
        short = short_address(contract_address)
        if self.rng.random() > 0.4:
            return self._verdict(
                contract_address, started,
                safe=True,
                confidence=80 + self.rng.randrange(15),
                threats=[],
                rationale=UNKNOWN_SAFE_RATIONALE.format(short=short),
            )
        return self._verdict(
            contract_address, started,
            safe=False,
            confidence=85 + self.rng.randrange(12),
            threats=list(UNKNOWN_UNSAFE_THREATS),
            rationale=UNKNOWN_UNSAFE_RATIONALE.format(short=short),
        )

    def _verdict(self, contract_address: str, started: float, **fields) -> SafetyVerdict:
        now = self.clock()
        return SafetyVerdict(
            contract_address=contract_address,
            cached=False,
            audit_time_ms=int((now - started) * 1000),
            timestamp=now,
            **fields,
        )

    async def _log(self, message: str, kind: str):
        await self.events.publish(LogEvent(agent=AGENT, message=message, type=kind, timestamp=self.clock()))
