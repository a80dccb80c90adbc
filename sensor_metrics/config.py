import os
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Redis Store Configuration
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_PASSWORD: Optional[str] = os.getenv("REDIS_PASSWORD") or None
METRICS_KEY_PREFIX = os.getenv("METRICS_KEY_PREFIX", "metrics")

# Store Client Retry / Timeout Configuration
STORE_MAX_ATTEMPTS = int(os.getenv("STORE_MAX_ATTEMPTS", "3"))
STORE_BACKOFF_BASE = float(os.getenv("STORE_BACKOFF_BASE", "0.1"))
STORE_MAX_BACKOFF = float(os.getenv("STORE_MAX_BACKOFF", "2.0"))
STORE_OPERATION_TIMEOUT = float(os.getenv("STORE_OPERATION_TIMEOUT", "5.0"))
STORE_MAX_CONNECTIONS = int(os.getenv("STORE_MAX_CONNECTIONS", "50"))

# Query Limits
# Largest number of buckets a zero-filled query may report (50000 minutes is about 35 days)
MAX_FILL_BUCKETS = int(os.getenv("MAX_FILL_BUCKETS", "50000"))

# Identity Configuration
API_TOKENS = os.getenv("API_TOKENS", "")

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: Optional[str] = os.getenv("LOG_FILE") or None
LOG_JSON = os.getenv("LOG_JSON", "true").lower() == "true"

# API Configuration
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")


def parse_api_tokens(raw: Optional[str] = None) -> Dict[str, str]:
    """
    Parse the API token table.

    The format is a comma-separated list of `token=owner_id` pairs, e.g.
    `API_TOKENS="tok_abc=user_1,tok_def=user_2"`. Malformed entries are skipped.

    Args:
        raw: Raw table; defaults to the API_TOKENS environment value

    Returns:
        Mapping of token to owner id
    """
    if raw is None:
        raw = API_TOKENS

    tokens: Dict[str, str] = {}
    for entry in raw.split(","):
        token, sep, owner = entry.strip().partition("=")
        token, owner = token.strip(), owner.strip()
        if not sep or not token or not owner:
            continue
        tokens[token] = owner
    return tokens


def get_store_settings() -> Dict[str, object]:
    """Keyword arguments for RedisStoreClient built from the environment."""
    return {
        "url": REDIS_URL,
        "password": REDIS_PASSWORD,
        "max_attempts": STORE_MAX_ATTEMPTS,
        "backoff_base": STORE_BACKOFF_BASE,
        "max_backoff": STORE_MAX_BACKOFF,
        "operation_timeout": STORE_OPERATION_TIMEOUT,
        "max_connections": STORE_MAX_CONNECTIONS,
    }
