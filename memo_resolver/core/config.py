"""
Service configuration - environment driven, read once at import time.
Getter functions re-read the environment where tests need to flip a flag at runtime.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Memoization store configuration
DB_PATH = os.getenv("DB_PATH", "./data/memory.db")
MEMORY_BACKEND = os.getenv("MEMORY_BACKEND", "sqlite")  # sqlite|json
MEMORY_FILE = os.getenv("MEMORY_FILE", "./data/memory.json")
MEMORY_CAPACITY = int(os.getenv("MEMORY_CAPACITY", "0"))  # 0 = unbounded

# Model configuration
MODEL_DATA_PATH = os.getenv("MODEL_DATA_PATH", "./data/model_data.json")
HIDDEN_LAYER_SIZES = os.getenv("HIDDEN_LAYER_SIZES", "1500,1500")
WEIGHT_INIT_RANGE = float(os.getenv("WEIGHT_INIT_RANGE", "0.5"))
WEIGHT_SEED = os.getenv("WEIGHT_SEED")  # unset = nondeterministic
CONFIDENCE_THRESHOLD = float(os.getenv("CONFIDENCE_THRESHOLD", "0.7"))

# External lookup configuration
SEARCH_API_URL = os.getenv("SEARCH_API_URL", "https://api.duckduckgo.com/")
SEARCH_TIMEOUT_SEC = float(os.getenv("SEARCH_TIMEOUT_SEC", "5"))

# DEBUG, HEARTBEAT_ENABLED and EXTERNAL_SEARCH_ENABLED are read dynamically by the getter functions

# Status reporter configuration (default disabled)
HEARTBEAT_INTERVAL_SEC = int(os.getenv("HEARTBEAT_INTERVAL_SEC", "60"))

# Web UI origins allowed by CORS
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000"
)

# Fixed answers used when no confident category and no external answer exist
NOT_UNDERSTOOD_MESSAGE = "Sorry, I didn't understand. My neural network is still simple!"
NOT_FOUND_MESSAGE = "Sorry, I couldn't find an exact answer, but I can learn from you!"

VERSION = "1.0.0"

VALID_BACKENDS = ["sqlite", "json"]


def get_memory_backend():
    """Get configured memoization backend implementation."""
    if MEMORY_BACKEND == "json":
        from .memory_backend import JsonFileMemoryBackend
        return JsonFileMemoryBackend(MEMORY_FILE)

    from .memory_backend import SQLiteMemoryBackend
    return SQLiteMemoryBackend(DB_PATH)


def get_search_provider():
    """Get configured external search provider. Returns None if external lookup disabled."""
    if not is_external_search_enabled():
        return None

    from .search_service import DuckDuckGoSearch
    return DuckDuckGoSearch(api_url=SEARCH_API_URL, timeout=SEARCH_TIMEOUT_SEC)


def is_external_search_enabled():
    """Check if external lookup is enabled."""
    return os.getenv("EXTERNAL_SEARCH_ENABLED", "true").lower() == "true"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def is_heartbeat_enabled():
    """Check if the status reporter is enabled."""
    return os.getenv("HEARTBEAT_ENABLED", "false").lower() == "true"


def get_heartbeat_interval():
    """Get status reporter interval in seconds."""
    return HEARTBEAT_INTERVAL_SEC


def get_memory_capacity():
    """Get FIFO capacity bound, or None when unbounded."""
    return MEMORY_CAPACITY if MEMORY_CAPACITY > 0 else None


def get_hidden_layer_sizes():
    """Parse HIDDEN_LAYER_SIZES ("1500,1500") into a list of ints."""
    return [int(part) for part in HIDDEN_LAYER_SIZES.split(",") if part.strip()]


def get_weight_seed():
    """Get the weight initialisation seed, or None."""
    return int(WEIGHT_SEED) if WEIGHT_SEED not in (None, "") else None


def get_cors_origins():
    return [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if MEMORY_BACKEND not in VALID_BACKENDS:
        issues.append(f"Invalid MEMORY_BACKEND: {MEMORY_BACKEND}")

    if MEMORY_CAPACITY < 0:
        issues.append("MEMORY_CAPACITY must be >= 0")

    if not 0.0 <= CONFIDENCE_THRESHOLD <= 1.0:
        issues.append(f"CONFIDENCE_THRESHOLD must be within [0, 1]: {CONFIDENCE_THRESHOLD}")

    if WEIGHT_INIT_RANGE <= 0:
        issues.append("WEIGHT_INIT_RANGE must be > 0")

    try:
        sizes = get_hidden_layer_sizes()
        if any(size < 1 for size in sizes):
            issues.append(f"HIDDEN_LAYER_SIZES must be positive: {HIDDEN_LAYER_SIZES}")
    except ValueError:
        issues.append(f"Invalid HIDDEN_LAYER_SIZES: {HIDDEN_LAYER_SIZES}")

    try:
        get_weight_seed()
    except ValueError:
        issues.append(f"Invalid WEIGHT_SEED: {WEIGHT_SEED}")

    if HEARTBEAT_INTERVAL_SEC < 1:
        issues.append("HEARTBEAT_INTERVAL_SEC must be >= 1")

    return issues
