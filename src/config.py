"""Configuration and constants for the LP ratio dashboard."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent.parent
LOG_DIR = Path(os.getenv("LOG_DIR", PROJECT_ROOT / "logs"))

# Tokens, in display order
TOKENS = ("HYPE", "SUI", "SOL")

# Exchange via CCXT
EXCHANGE_ID = os.getenv("EXCHANGE_ID", "bybit")
QUOTE_CURRENCY = os.getenv("QUOTE_CURRENCY", "USDT")
RATE_LIMIT_DELAY = 0.1  # seconds between per-token requests
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 2  # exponential backoff multiplier

# Insight thresholds (percent)
ROTATE_GAIN_THRESHOLD = 5
TAKE_PROFIT_THRESHOLD = 10
DIP_THRESHOLD = -10
PAIR_ROTATION_THRESHOLD = 10

# Ordered (base, quote) pairs checked for ratio rotation insights
ROTATION_PAIRS = (
    ("SUI", "SOL"),
    ("HYPE", "SUI"),
    ("SOL", "HYPE"),
)

# Dashboard
POLL_INTERVAL = int(os.getenv("POLL_INTERVAL", "30"))  # seconds
