"""Shared fixtures: a scripted backend and helpers to drive the orchestrator."""

from collections.abc import AsyncIterator

import pytest

from uigen.agent.backend import Backend, BackendEvent, BackendRequest
from uigen.agent.mock_backend import ScriptedTurn, emit_turn
from uigen.agent.orchestrator import AgentOrchestrator
from uigen.filesystem.virtual_fs import VirtualFileSystem
from uigen.utils.dependencies import build_tool_executor


class ScriptedBackend(Backend):
    """
    Replays a fixed list of turns, one per request.

    The last turn is repeated once the list is exhausted. An exception in the
    list is raised instead of streaming a turn.
    """

    name = "scripted"

    def __init__(self, turns: list[ScriptedTurn | Exception]):
        self.turns = list(turns)
        self.requests: list[BackendRequest] = []

    async def stream_turn(self, request: BackendRequest) -> AsyncIterator[BackendEvent]:
        self.requests.append(request)
        turn = self.turns[min(len(self.requests), len(self.turns)) - 1]
        if isinstance(turn, Exception):
            raise turn
        async for event in emit_turn(turn):
            yield event


@pytest.fixture
def scripted_backend():
    """Factory for ScriptedBackend instances"""
    return ScriptedBackend


@pytest.fixture
def make_orchestrator():
    """Factory building an orchestrator over a scripted backend and a fresh (or given) file system"""

    def _make(turns, file_system=None, **kwargs):
        file_system = file_system if file_system is not None else VirtualFileSystem()
        backend = turns if isinstance(turns, Backend) else ScriptedBackend(turns)
        return AgentOrchestrator(
            backend=backend,
            file_system=file_system,
            tool_executor=build_tool_executor(file_system),
            system_prompt="You build React components.",
            **kwargs,
        )

    return _make


@pytest.fixture
def collect_events():
    """Runs an orchestrator to completion and returns every event it emitted"""

    async def _collect(orchestrator, history, **kwargs):
        return [event async for event in orchestrator.run(history, **kwargs)]

    return _collect
