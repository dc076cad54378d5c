"""
Assist core configuration.
All tunables come from environment variables (optionally a .env file) so the
heuristic thresholds stay adjustable per deployment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/assist_core.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Embeddings
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "sentence_transformers")  # sentence_transformers|ollama|hash
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-mpnet-base-v2")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")
EMBED_DIM = int(os.getenv("EMBED_DIM", "768"))

# Retrieval
VECTOR_BACKEND = os.getenv("VECTOR_BACKEND", "auto")  # auto|faiss|numpy|keyword
SEARCH_DEFAULT_K = int(os.getenv("SEARCH_DEFAULT_K", "5"))
SEARCH_CACHE_TTL_SEC = int(os.getenv("SEARCH_CACHE_TTL_SEC", "300"))
SEARCH_CACHE_MAX = int(os.getenv("SEARCH_CACHE_MAX", "1000"))
KEYWORD_SCORE = float(os.getenv("KEYWORD_SCORE", "0.5"))

# Tool dispatch
TOOL_TIMEOUT_SEC = float(os.getenv("TOOL_TIMEOUT_SEC", "5"))
TOOL_MAX_RETRIES = int(os.getenv("TOOL_MAX_RETRIES", "2"))
TOOL_RETRY_BACKOFF_SEC = float(os.getenv("TOOL_RETRY_BACKOFF_SEC", "0.2"))
PRICE_MAX_CANDIDATES = int(os.getenv("PRICE_MAX_CANDIDATES", "5"))
SHIPPING_PROVIDER = os.getenv("SHIPPING_PROVIDER", "table")  # table|http
SHIPPING_API_URL = os.getenv("SHIPPING_API_URL")
SHIPPING_API_TIMEOUT_SEC = float(os.getenv("SHIPPING_API_TIMEOUT_SEC", "3"))

# Tone adaptation
TONE_WINDOW = int(os.getenv("TONE_WINDOW", "5"))
TONE_CONFIDENCE_CUTOFF = float(os.getenv("TONE_CONFIDENCE_CUTOFF", "0.2"))

# Pattern analysis (nightly)
PATTERN_ENABLED = os.getenv("PATTERN_ENABLED", "true").lower() == "true"
PATTERN_MIN_SAMPLES = int(os.getenv("PATTERN_MIN_SAMPLES", "3"))
PATTERN_FAILURE_RATE = float(os.getenv("PATTERN_FAILURE_RATE", "0.30"))
PATTERN_WINDOW_HOURS = int(os.getenv("PATTERN_WINDOW_HOURS", "24"))
PATTERN_INTERVAL_SEC = int(os.getenv("PATTERN_INTERVAL_SEC", "86400"))  # Daily
PATTERN_MAX_WORKERS = int(os.getenv("PATTERN_MAX_WORKERS", "1"))

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_embed_provider_name():
    """Get the preferred embedding provider (sentence_transformers|ollama|hash)."""
    return EMBED_PROVIDER


def get_vector_backend():
    """Get the configured vector backend (auto|faiss|numpy|keyword)."""
    return VECTOR_BACKEND


def is_pattern_analysis_enabled():
    """Check if the nightly pattern analysis job is enabled."""
    return PATTERN_ENABLED


def get_pattern_thresholds():
    """Get (min_samples, failure_rate) used to gate weakness findings."""
    return PATTERN_MIN_SAMPLES, PATTERN_FAILURE_RATE


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER not in ["sentence_transformers", "ollama", "hash"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if VECTOR_BACKEND not in ["auto", "faiss", "numpy", "keyword"]:
        issues.append(f"Invalid VECTOR_BACKEND: {VECTOR_BACKEND}")

    if SHIPPING_PROVIDER not in ["table", "http"]:
        issues.append(f"Invalid SHIPPING_PROVIDER: {SHIPPING_PROVIDER}")

    if SHIPPING_PROVIDER == "http" and not SHIPPING_API_URL:
        issues.append("SHIPPING_PROVIDER=http requires SHIPPING_API_URL")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if TOOL_TIMEOUT_SEC <= 0:
        issues.append("TOOL_TIMEOUT_SEC must be > 0")

    if TOOL_MAX_RETRIES < 0:
        issues.append("TOOL_MAX_RETRIES must be >= 0")

    if not 0 <= TONE_CONFIDENCE_CUTOFF <= 1:
        issues.append("TONE_CONFIDENCE_CUTOFF must be between 0 and 1")

    if PATTERN_MIN_SAMPLES < 1:
        issues.append("PATTERN_MIN_SAMPLES must be >= 1")

    if not 0 <= PATTERN_FAILURE_RATE < 1:
        issues.append("PATTERN_FAILURE_RATE must be in [0, 1)")

    if PATTERN_INTERVAL_SEC < 1:
        issues.append("PATTERN_INTERVAL_SEC must be >= 1")

    if PATTERN_MAX_WORKERS < 1:
        issues.append("PATTERN_MAX_WORKERS must be >= 1")

    return issues
