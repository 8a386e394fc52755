"""
Service graph construction.

Builds the anonymization engine, the shared outbound HTTP client, the
configured backends and the orchestrator from settings. Everything is
passed explicitly; there are no module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from mirror.anonymizer.engine import AnonymizationEngine
from mirror.search.backends import FallbackGenerator, build_backends
from mirror.search.normalizer import ResultNormalizer
from mirror.search.orchestrator import SearchOrchestrator
from mirror.utils.config import Settings, get_settings
from mirror.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MirrorService:
    """Long-lived objects shared by all requests."""

    settings: Settings
    engine: AnonymizationEngine
    orchestrator: SearchOrchestrator
    client: httpx.AsyncClient

    async def close(self) -> None:
        await self.orchestrator.close()
        if not self.client.is_closed:
            await self.client.aclose()


def build_service(
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> MirrorService:
    """
    Build the service graph.

    Args:
        settings: Settings. Loaded with get_settings() if None.
        client: Outbound HTTP client. A new one is created if None.

    Returns:
        MirrorService with an initialized anonymization engine.
    """
    settings = settings or get_settings()
    client = client or httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": settings.search.user_agent},
    )

    engine = AnonymizationEngine(settings.anonymization)
    engine.initialize()

    orchestrator = SearchOrchestrator(
        engine,
        build_backends(settings.search, client),
        config=settings.search,
        anonymization_config=settings.anonymization,
        normalizer=ResultNormalizer(settings.search),
        fallback=FallbackGenerator(
            settings.search.fallback_label, settings.search.fallback_source
        ),
        max_query_length=settings.server.max_query_length,
    )

    logger.info(
        "Service built",
        version=settings.general.version,
        backends=[b.name for b in orchestrator.backends],
        anonymization_enabled=settings.anonymization.enabled,
    )
    return MirrorService(settings, engine, orchestrator, client)
