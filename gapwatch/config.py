# gapwatch/config.py
import copy
import os
from typing import Optional

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG = {
    'system': {
        'log_level': "INFO",
    },
    'scanner': {
        'poll_interval': 3.0,
        'connect_delay': 1.5,
        'profit_threshold': 2.0,
        'noise': 0.02,
        'opportunity_period': 8,
        'boost_min': 0.02,
        'boost_max': 0.05,
        'profit_haircut': 0.75,
        'log_every': 3,
        'pairs': [
            {
                'name': "MON/USDC",
                'venue_a': "Kuru",
                'venue_b': "MockDex",
                'base_price_a': 1.0,
                'base_price_b': 1.02,
            },
        ],
    },
    'classifier': {
        'mode': "offline",
        'model': "gpt-4o-mini",
        'temperature': 0.7,
        'max_tokens': 500,
        'request_timeout': 20.0,
        'cache_ttl': 3600.0,
        'fetch_delay_min': 0.3,
        'fetch_delay_max': 0.7,
        'think_delay_min': 0.6,
        'think_delay_max': 1.4,
    },
    'executor': {
        'amount_in': 1000,
        'min_delay': 0.8,
        'max_delay': 1.5,
        'gas_cost': 0.02,
    },
    'orchestrator': {
        'settle_delay': 2.0,
        'stats_interval': 5.0,
        'roast_history': 50,
    },
    'audit': {
        'trade_log': "logs/trades.csv",
    },
    'server': {
        'host': "0.0.0.0",
        'port': 3001,
    },
    'dashboard': {
        'enabled': True,
        'log_lines': 18,
    },
}

CLASSIFIER_MODES = ("offline", "ai")

class ConfigError(ValueError):
    """Raised when the configuration cannot drive the pipeline."""

def deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged

def load_config(path: Optional[str] = "config.yaml", env_file: Optional[str] = ".env") -> dict:
    """
    Defaults, overlaid with `path` when it exists, plus the OpenAI key from the environment.
    """
    if env_file:
        load_dotenv(env_file, override=False)

    raw = {}
    if path and os.path.exists(path):
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")

    config = deep_merge(DEFAULT_CONFIG, raw)
    config['classifier']['api_key'] = os.environ.get("OPENAI_API_KEY", "")
    validate_config(config)
    return config

def validate_config(config: dict):
    scanner = config['scanner']
    for key in ('poll_interval', 'noise', 'profit_threshold'):
        if scanner[key] <= 0:
            raise ConfigError(f"scanner.{key} must be positive, got {scanner[key]}")
    if scanner['connect_delay'] < 0:
        raise ConfigError("scanner.connect_delay cannot be negative")
    if int(scanner['opportunity_period']) < 1 or int(scanner['log_every']) < 1:
        raise ConfigError("scanner.opportunity_period and scanner.log_every must be >= 1")
    if scanner['boost_min'] > scanner['boost_max']:
        raise ConfigError("scanner.boost_min cannot exceed scanner.boost_max")
    if not scanner['pairs']:
        raise ConfigError("scanner.pairs must define at least one pair")
    for pair in scanner['pairs']:
        missing = {'name', 'venue_a', 'venue_b', 'base_price_a', 'base_price_b'} - set(pair)
        if missing:
            raise ConfigError(f"pair {pair.get('name', '?')} is missing {sorted(missing)}")
        if pair['base_price_a'] <= 0 or pair['base_price_b'] <= 0:
            raise ConfigError(f"pair {pair['name']} needs positive base prices")

    classifier = config['classifier']
    if classifier['mode'] not in CLASSIFIER_MODES:
        raise ConfigError(f"classifier.mode must be one of {CLASSIFIER_MODES}, got {classifier['mode']!r}")
    if classifier['request_timeout'] <= 0 or classifier['cache_ttl'] <= 0:
        raise ConfigError("classifier.request_timeout and classifier.cache_ttl must be positive")
    _check_bounds(classifier, 'fetch_delay_min', 'fetch_delay_max', "classifier")
    _check_bounds(classifier, 'think_delay_min', 'think_delay_max', "classifier")

    executor = config['executor']
    _check_bounds(executor, 'min_delay', 'max_delay', "executor")
    if executor['amount_in'] <= 0:
        raise ConfigError("executor.amount_in must be positive")

    orchestrator = config['orchestrator']
    if orchestrator['stats_interval'] <= 0:
        raise ConfigError("orchestrator.stats_interval must be positive")
    if orchestrator['settle_delay'] < 0:
        raise ConfigError("orchestrator.settle_delay cannot be negative")
    if int(orchestrator['roast_history']) < 1:
        raise ConfigError("orchestrator.roast_history must be >= 1")

def _check_bounds(section: dict, low: str, high: str, name: str):
    if section[low] < 0 or section[low] > section[high]:
        raise ConfigError(f"{name}.{low} must be between 0 and {name}.{high}")
