"""
Configuration and dependency management for the chat service.
"""

import logging
from functools import lru_cache

from uigen.agent.backend import AnthropicBackend, Backend
from uigen.agent.mock_backend import FallbackBackend
from uigen.agent.orchestrator import AgentOrchestrator
from uigen.agent.persistence import PersistenceHook
from uigen.filesystem.virtual_fs import VirtualFileSystem
from uigen.tools.base import ToolExecutor
from uigen.tools.edit_tool import TextEditorTool
from uigen.tools.file_manager_tool import FileManagerTool
from uigen.utils.config import ServiceConfig

logger = logging.getLogger(__name__)


@lru_cache
def get_base_config() -> ServiceConfig:
    """
    Retrieves the base server configuration from environment variables.

    This function is cached to avoid repeatedly reading and parsing environment
    variables and .env files, which improves performance.

    Returns:
        A cached instance of the ServiceConfig.
    """
    return ServiceConfig()


# --- Backend Providers ---


@lru_cache
def get_backend_provider() -> Backend:
    """Returns a cached backend: Anthropic when a key is configured, the fallback otherwise."""
    config = get_base_config()
    if config.has_api_key:
        logger.info(f"Initializing Anthropic backend with model {config.ANTHROPIC_MODEL}.")
        return AnthropicBackend(
            api_key=config.ANTHROPIC_API_KEY,
            model=config.ANTHROPIC_MODEL,
            timeout=config.ANTHROPIC_TIMEOUT,
            base_url=config.ANTHROPIC_BASE_URL,
        )
    logger.warning("No ANTHROPIC_API_KEY found. Using the static fallback backend.")
    return FallbackBackend(chunk_delay=config.FALLBACK_CHUNK_DELAY)


async def close_backend_provider() -> None:
    """Closes the cached backend, if one was created, and forgets it."""
    if not get_backend_provider.cache_info().currsize:
        return
    backend = get_backend_provider()
    logger.info(f"Closing backend '{backend.name}'.")
    await backend.aclose()
    get_backend_provider.cache_clear()


def get_step_limit(config: ServiceConfig, backend: Backend) -> int:
    """The fallback backend gets its own, smaller step ceiling."""
    if isinstance(backend, FallbackBackend):
        return config.FALLBACK_MAX_STEPS
    return config.MAX_STEPS


def get_persistence_hook() -> PersistenceHook | None:
    """
    Returns the hook that stores finished projects.

    Storage lives outside this service; deployments override this provider to
    plug in their project store.
    """
    return None


# --- Per-request Builders ---
# Everything below is constructed fresh for every request and never shared.


def build_tool_executor(file_system: VirtualFileSystem) -> ToolExecutor:
    """Returns the editor and manager tools bound to one file system."""
    return ToolExecutor([TextEditorTool(file_system), FileManagerTool(file_system)])


def build_orchestrator(
    file_system: VirtualFileSystem,
    backend: Backend,
    config: ServiceConfig,
    persistence_hook: PersistenceHook | None = None,
) -> AgentOrchestrator:
    return AgentOrchestrator(
        backend=backend,
        file_system=file_system,
        tool_executor=build_tool_executor(file_system),
        max_steps=get_step_limit(config, backend),
        max_output_tokens=config.MAX_OUTPUT_TOKENS,
        persistence_hook=persistence_hook,
    )
