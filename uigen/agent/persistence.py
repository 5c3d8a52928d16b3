"""Hand-off point between a finished run and the external project store."""

import logging
from typing import Any, Protocol, runtime_checkable

from uigen.models.messages import Message

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceHook(Protocol):
    """
    Receives the final state of a run that belongs to a project.

    Implementations own durability; the orchestrator only guarantees that
    `files` is a stable snapshot and that the hook is awaited at most once.
    """

    async def on_finish(
        self, project_id: str, messages: list[Message], files: dict[str, dict[str, Any]]
    ) -> None: ...


async def notify_persistence_hook(
    hook: PersistenceHook | None,
    project_id: str | None,
    messages: list[Message],
    files: dict[str, dict[str, Any]],
) -> bool:
    """
    Invoke the hook if the run belongs to a project.

    Failures are logged and swallowed so that they never affect the response
    already streaming to the caller.

    Returns:
        True if the hook completed without raising.
    """
    if hook is None or not project_id:
        return False
    try:
        await hook.on_finish(project_id, messages, files)
    except Exception as e:
        logger.error(f"Failed to save project data for {project_id}: {e}", exc_info=True)
        return False
    logger.info(f"Saved project {project_id} ({len(messages)} messages, {len(files)} nodes)")
    return True
