"""
AssistantCore - the surface the orchestration/reasoning layer talks to.

Built once at process start by `build_assistant_core()`:

    1. validate configuration (fatal issues raise ConfigurationError)
    2. make sure the collaborator tables exist
    3. probe the retrieval backend once (native FAISS / numpy / keyword)
    4. register the built-in tools; a duplicate name aborts startup
    5. optionally register the nightly pattern job on a HeartbeatScheduler
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from .agents.builtin_tools import builtin_tools
from .agents.shipping import HttpShippingRateProvider, ShippingRateProvider, ShippingZoneRateProvider
from .agents.tone import ToneAdapter, ToneAnalysis, ToneAnalyzer
from .agents.tools import Capability, ToolContext, ToolDispatcher, ToolRegistry
from .core import config
from .core.dao import AlertSink, KnowledgeRepository, OutcomeRepository
from .core.db import init_db
from .core.errors import ConfigurationError
from .core.heartbeat import HeartbeatScheduler
from .core.pattern_analysis import BatchReport, PatternAnalyzer
from .core.schema import WeaknessFinding
from .util.logging import logger
from .vector.embeddings import EmbeddingService, IEmbeddingProvider, build_embedding_provider
from .vector.indexer import BackfillReport, KnowledgeIndexer
from .vector.knowledge_search import KnowledgeSearchService
from .vector.strategy import RetrievalStrategy, probe_retrieval_strategy
from .vector.types import SimilarityResult

PATTERN_TASK_NAME = "pattern_analysis"


class AssistantCore:
    """Facade over the tool dispatcher, retrieval, tone and pattern analysis."""

    def __init__(self, registry: ToolRegistry, dispatcher: ToolDispatcher,
                 search_service: KnowledgeSearchService, tone_analyzer: ToneAnalyzer,
                 tone_adapter: ToneAdapter, pattern_analyzer: PatternAnalyzer,
                 indexer: Optional[KnowledgeIndexer] = None):
        self.registry = registry
        self.dispatcher = dispatcher
        self.search_service = search_service
        self.tone_analyzer = tone_analyzer
        self.tone_adapter = tone_adapter
        self.pattern_analyzer = pattern_analyzer
        self.indexer = indexer

    @property
    def retrieval_strategy(self) -> RetrievalStrategy:
        return self.search_service.strategy

    # Tools

    def register_tool(self, capability: Capability) -> None:
        self.registry.register(capability)

    def list_tool_definitions(self) -> List[Dict[str, Any]]:
        return self.registry.list_definitions()

    async def invoke_tool(self, name: str, args: Optional[Dict[str, Any]], context: ToolContext) -> Dict[str, Any]:
        return await self.dispatcher.invoke(name, args, context)

    async def invoke_tools(self, calls: List[Dict[str, Any]], context: ToolContext) -> List[Dict[str, Any]]:
        return await self.dispatcher.invoke_many(calls, context)

    # Retrieval

    def search_knowledge(self, query: str, tenant_id: str, k: Optional[int] = None) -> List[SimilarityResult]:
        return self.search_service.search(query, tenant_id, k)

    def backfill_embeddings(self, tenant_id: str) -> BackfillReport:
        if self.indexer is None:
            raise ConfigurationError("No knowledge indexer configured")
        return self.indexer.backfill(tenant_id)

    # Tone

    def analyze_tone(self, messages: Sequence[str]) -> ToneAnalysis:
        return self.tone_analyzer.analyze(messages)

    def adapt_reply(self, reply: str, analysis: Union[ToneAnalysis, str]) -> str:
        return self.tone_adapter.adapt(reply, _tone_of(analysis))

    def style_directive(self, analysis: Union[ToneAnalysis, str]) -> str:
        return self.tone_adapter.style_directive(_tone_of(analysis))

    def inject_style(self, prompt: str, analysis: Union[ToneAnalysis, str]) -> str:
        return self.tone_adapter.inject_directive(prompt, _tone_of(analysis))

    # Pattern analysis

    def run_daily_pattern_analysis(self, tenant_id: str) -> List[WeaknessFinding]:
        return self.pattern_analyzer.run_daily_pattern_analysis(tenant_id)

    def run_pattern_batch(self, tenant_ids: Optional[List[str]] = None) -> BatchReport:
        return self.pattern_analyzer.run_batch(tenant_ids)

    def schedule_pattern_analysis(self, scheduler: HeartbeatScheduler, interval_sec: int = None,
                                  run_immediately: bool = False) -> None:
        """Register the batch job on a scheduler (background, never on the request path)."""
        if not config.is_pattern_analysis_enabled():
            logger.info("Pattern analysis disabled (PATTERN_ENABLED=false); not scheduling")
            return

        scheduler.register_task(
            PATTERN_TASK_NAME,
            interval_sec or config.PATTERN_INTERVAL_SEC,
            self.run_pattern_batch,
            run_immediately=run_immediately
        )


def _tone_of(analysis: Union[ToneAnalysis, str]) -> str:
    if isinstance(analysis, ToneAnalysis):
        return analysis.dominant_tone
    return analysis


def build_shipping_provider(db_path: str = None) -> ShippingRateProvider:
    if config.SHIPPING_PROVIDER == "http":
        return HttpShippingRateProvider(config.SHIPPING_API_URL, config.SHIPPING_API_TIMEOUT_SEC)
    return ShippingZoneRateProvider(db_path)


def build_assistant_core(db_path: str = None, embedding_provider: Optional[IEmbeddingProvider] = None,
                         shipping_provider: Optional[ShippingRateProvider] = None,
                         strategy: Optional[RetrievalStrategy] = None,
                         extra_tools: Optional[List[Capability]] = None,
                         init_schema: bool = True) -> AssistantCore:
    """
    Wire an AssistantCore from configuration.

    Args:
        db_path: SQLite database holding the collaborator tables (DB_PATH by default)
        embedding_provider: Preferred embedding provider; built from
            EMBED_PROVIDER when omitted
        shipping_provider: Rate source; built from SHIPPING_PROVIDER when omitted
        strategy: Retrieval strategy; probed from VECTOR_BACKEND when omitted
        extra_tools: Additional capabilities to register after the built-ins
        init_schema: Create the tables if they do not exist

    Raises:
        ConfigurationError: invalid settings or duplicate tool names
    """
    issues = config.validate_config()
    if issues:
        raise ConfigurationError(f"Invalid configuration: {issues}")

    if init_schema:
        init_db(db_path)

    if embedding_provider is None:
        embedding_provider = build_embedding_provider(
            config.get_embed_provider_name(), config.EMBED_MODEL_NAME,
            config.EMBED_DIM, config.OLLAMA_EMBED_MODEL
        )
    embedding_service = EmbeddingService(embedding_provider, config.EMBED_DIM)

    if strategy is None:
        strategy = probe_retrieval_strategy(config.get_vector_backend())

    repository = KnowledgeRepository(db_path)
    search_service = KnowledgeSearchService(
        repository, embedding_service,
        strategy=strategy,
        dimension=config.EMBED_DIM,
        keyword_score=config.KEYWORD_SCORE,
        default_k=config.SEARCH_DEFAULT_K,
        cache_ttl_sec=config.SEARCH_CACHE_TTL_SEC,
        cache_max=config.SEARCH_CACHE_MAX
    )

    registry = ToolRegistry()
    tools = builtin_tools(
        repository,
        shipping_provider or build_shipping_provider(db_path),
        search_service,
        config.PRICE_MAX_CANDIDATES
    )
    for capability in tools + list(extra_tools or []):
        registry.register(capability)

    dispatcher = ToolDispatcher(
        registry,
        timeout_sec=config.TOOL_TIMEOUT_SEC,
        max_retries=config.TOOL_MAX_RETRIES,
        retry_backoff_sec=config.TOOL_RETRY_BACKOFF_SEC
    )

    min_samples, failure_rate = config.get_pattern_thresholds()
    pattern_analyzer = PatternAnalyzer(
        OutcomeRepository(db_path), AlertSink(db_path),
        min_samples=min_samples,
        failure_rate=failure_rate,
        window_hours=config.PATTERN_WINDOW_HOURS,
        max_workers=config.PATTERN_MAX_WORKERS
    )

    core = AssistantCore(
        registry=registry,
        dispatcher=dispatcher,
        search_service=search_service,
        tone_analyzer=ToneAnalyzer(window=config.TONE_WINDOW, confidence_cutoff=config.TONE_CONFIDENCE_CUTOFF),
        tone_adapter=ToneAdapter(),
        pattern_analyzer=pattern_analyzer,
        indexer=KnowledgeIndexer(repository, embedding_service, search_service)
    )

    logger.log_operation("assistant_core.build", "success", {
        "strategy": strategy.value,
        "embed_provider": config.get_embed_provider_name(),
        "tools": registry.names()
    })
    return core
