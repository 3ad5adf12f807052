"""
Kernel context - the store, configuration and components one process runs on.

Components never reach for module globals; they are built from a context and
receive its store and config. The process-wide context has an explicit
lifecycle:

    context = init_kernel()
    ...
    teardown_kernel()
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.config import Config, KernelConfig, load_kernel_config
from ..core.database import reset_supabase_client
from ..core.store import InMemoryRecordStore, RecordStore
from ..core.supabase_store import SupabaseRecordStore
from ..services.opportunity_scorer import OpportunityScorer
from ..services.pain_point_planner import PainPointPlanner
from ..services.preview_queue import PreviewQueue
from ..services.sinks import (
    InMemoryNurtureSink,
    InMemoryPublisher,
    NurtureSink,
    Publisher,
    SupabaseNurtureSink,
)
from ..services.viral_leads_bridge import ViralToLeadsBridge

logger = logging.getLogger(__name__)


def create_store(backend: str, config: KernelConfig) -> RecordStore:
    """Record store for a backend name ('memory' or 'supabase')."""
    vocabulary = config.compliance.disclosure_vocabulary
    if backend == "memory":
        return InMemoryRecordStore(vocabulary)
    if backend == "supabase":
        return SupabaseRecordStore(disclosure_vocabulary=vocabulary)
    raise ValueError(f"Unknown store backend: {backend}")


@dataclass
class KernelContext:
    """Everything a kernel operation needs, wired to one store."""
    config: KernelConfig
    store: RecordStore
    scorer: OpportunityScorer
    planner: PainPointPlanner
    queue: PreviewQueue
    bridge: ViralToLeadsBridge
    publisher: Publisher
    nurture_sink: NurtureSink

    @classmethod
    def create(
        cls,
        config: Optional[KernelConfig] = None,
        store: Optional[RecordStore] = None,
        publisher: Optional[Publisher] = None,
        nurture_sink: Optional[NurtureSink] = None
    ) -> "KernelContext":
        config = config or load_kernel_config()
        config.validate()

        backend = Config.STORE_BACKEND
        store = store or create_store(backend, config)
        if nurture_sink is None:
            nurture_sink = SupabaseNurtureSink() if backend == "supabase" else InMemoryNurtureSink()

        return cls(
            config=config,
            store=store,
            scorer=OpportunityScorer(config, store),
            planner=PainPointPlanner(store),
            queue=PreviewQueue(store, config),
            bridge=ViralToLeadsBridge(store, config.lead_scoring, nurture_sink),
            publisher=publisher or InMemoryPublisher(),
            nurture_sink=nurture_sink,
        )


_context: Optional[KernelContext] = None


def init_kernel(
    config: Optional[KernelConfig] = None,
    store: Optional[RecordStore] = None,
    publisher: Optional[Publisher] = None,
    nurture_sink: Optional[NurtureSink] = None
) -> KernelContext:
    """Build the process-wide context, replacing any existing one."""
    global _context
    _context = KernelContext.create(config, store, publisher, nurture_sink)
    logger.info(f"Kernel initialized ({type(_context.store).__name__})")
    return _context


def get_kernel_context() -> KernelContext:
    """
    The process-wide context.

    Raises:
        RuntimeError: If init_kernel() has not been called
    """
    if _context is None:
        raise RuntimeError("Kernel not initialized. Call init_kernel() first.")
    return _context


def teardown_kernel() -> None:
    """Drop the process-wide context and any shared Supabase client."""
    global _context
    _context = None
    reset_supabase_client()
    logger.info("Kernel torn down")
