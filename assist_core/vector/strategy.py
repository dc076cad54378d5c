"""
Startup capability probe for the retrieval backend.

The probe runs once when the service is built and yields an explicit
strategy value that is passed to the search service, instead of checking
for the native backend on every request.
"""

from enum import Enum

from ..util.logging import logger


class RetrievalStrategy(Enum):
    NATIVE_VECTOR = "native-vector"
    BRUTE_FORCE = "brute-force"
    KEYWORD_ONLY = "keyword"


def native_backend_available() -> bool:
    """Check whether the FAISS extension can be imported."""
    try:
        import faiss  # noqa: F401
        return True
    except ImportError:
        return False


def probe_retrieval_strategy(configured: str = "auto") -> RetrievalStrategy:
    """
    Resolve the VECTOR_BACKEND setting into a strategy.

    auto    -> native when FAISS imports, else brute force
    faiss   -> native, degrading to brute force if FAISS is missing
    numpy   -> brute force
    keyword -> keyword only
    """
    if configured == "keyword":
        strategy = RetrievalStrategy.KEYWORD_ONLY
    elif configured == "numpy":
        strategy = RetrievalStrategy.BRUTE_FORCE
    elif native_backend_available():
        strategy = RetrievalStrategy.NATIVE_VECTOR
    else:
        if configured == "faiss":
            logger.log_fallback("retrieval", "native-vector", "brute-force", "faiss not importable")
        strategy = RetrievalStrategy.BRUTE_FORCE

    logger.log_operation("retrieval.probe", "resolved", {"configured": configured, "strategy": strategy.value})
    return strategy
