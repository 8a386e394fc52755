"""
Backend Registry and Factory Functions.

Maps the ``kind`` of a configured backend to its adapter class and builds
the ordered backend list from settings.
"""

from __future__ import annotations

import httpx

from mirror.search.provider import BaseSearchBackend
from mirror.utils.config import SearchConfig
from mirror.utils.logging import get_logger

logger = get_logger(__name__)

# Populated by __init__.py after all adapter modules are imported
_backend_registry: dict[str, type[BaseSearchBackend]] = {}


def register_backend(kind: str, backend_class: type[BaseSearchBackend]) -> None:
    """
    Register an adapter class for a backend kind.

    Args:
        kind: Value of ``kind`` in backend configuration.
        backend_class: Adapter class (must inherit BaseSearchBackend).
    """
    if not issubclass(backend_class, BaseSearchBackend):
        raise TypeError("Backend must inherit from BaseSearchBackend")

    _backend_registry[kind.lower()] = backend_class
    logger.debug("Registered backend kind", kind=kind)


def get_backend_class(kind: str) -> type[BaseSearchBackend] | None:
    """Get the adapter class for a backend kind."""
    return _backend_registry.get(kind.lower())


def get_available_kinds() -> list[str]:
    """Get registered backend kinds."""
    return sorted(_backend_registry)


def build_backends(
    config: SearchConfig,
    client: httpx.AsyncClient | None = None,
) -> list[BaseSearchBackend]:
    """
    Instantiate enabled backends in priority order.

    Args:
        config: Search configuration.
        client: Shared HTTP client passed to every backend.

    Returns:
        Backends in ``backend_order`` order.

    Raises:
        ValueError: If a configured backend has an unknown kind.
    """
    backends = []
    for name, backend_config in config.ordered_backends():
        backend_class = get_backend_class(backend_config.kind)
        if backend_class is None:
            raise ValueError(
                f"Backend '{name}' has unknown kind '{backend_config.kind}'. "
                f"Available: {', '.join(get_available_kinds())}"
            )
        backends.append(
            backend_class(name, backend_config, client=client, user_agent=config.user_agent)
        )

    logger.info("Search backends configured", backends=[b.name for b in backends])
    return backends
