#!/usr/bin/env python3
"""
Unit tests for orchestrator.py
"""

import asyncio
from contextlib import aclosing
from unittest.mock import AsyncMock, MagicMock

import pytest

from uigen.agent.backend import Backend, BackendTransportError, TextDelta
from uigen.agent.mock_backend import ScriptedTurn
from uigen.agent.orchestrator import BACKEND_FAILURE_MESSAGE, AgentOrchestrator, OrchestratorState
from uigen.filesystem.virtual_fs import VirtualFileSystem
from uigen.models.events import (
    ErrorEvent,
    FinishEvent,
    StepFinishedEvent,
    TextDeltaEvent,
    ToolCallCompletedEvent,
    ToolCallStartedEvent,
)
from uigen.models.messages import Message
from uigen.tools.base import ToolCall

APP_SOURCE = "export default function App() { return <div>Hello</div>; }"


def create_app_call(call_id="call_1"):
    return ToolCall(
        name="editor",
        call_id=call_id,
        arguments={"command": "create", "path": "/App.jsx", "file_text": APP_SOURCE},
    )


def view_root_call(call_id):
    return ToolCall(name="editor", call_id=call_id, arguments={"command": "view", "path": "/"})


@pytest.fixture
def history():
    return [Message(role="user", content="Create an App component")]


class TestAgentOrchestrator:
    """Tests for AgentOrchestrator"""

    @pytest.mark.asyncio
    async def test_create_then_answer(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator(
            [
                ScriptedTurn(text="Creating the app.", tool_calls=[create_app_call()]),
                ScriptedTurn(text="Done."),
            ]
        )

        events = await collect_events(orchestrator, history)

        started = [e for e in events if isinstance(e, ToolCallStartedEvent)]
        completed = [e for e in events if isinstance(e, ToolCallCompletedEvent)]
        assert [e.label for e in started] == ["Creating `App.jsx`"]
        assert completed[0].result.ok
        assert completed[0].result.output == "File created successfully at: /App.jsx"
        assert "".join(e.text for e in events if isinstance(e, TextDeltaEvent)) == "Creating the app.Done."
        assert [e.step for e in events if isinstance(e, StepFinishedEvent)] == [1, 2]

        finish = events[-1]
        assert isinstance(finish, FinishEvent)
        assert finish.status == "done"
        assert finish.reason == "completed"
        assert finish.steps == 2
        assert finish.files["/App.jsx"]["content"] == APP_SOURCE
        assert [m.role for m in finish.messages] == ["user", "assistant", "tool", "assistant"]
        assert finish.messages[1].tool_calls[0].id == "call_1"
        assert finish.messages[2].tool_results[0].id == "call_1"
        assert orchestrator.state is OrchestratorState.DONE
        assert orchestrator.file_system.read("/App.jsx") == APP_SOURCE

    @pytest.mark.asyncio
    async def test_finish_is_always_last_and_unique(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator([ScriptedTurn(text="Hi there")])
        events = await collect_events(orchestrator, history)
        assert sum(isinstance(e, FinishEvent) for e in events) == 1
        assert isinstance(events[-1], FinishEvent)

    @pytest.mark.asyncio
    async def test_request_carries_prompt_tools_and_history(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator([ScriptedTurn(text="ok")], max_output_tokens=500)
        await collect_events(orchestrator, history)

        request = orchestrator.backend.requests[0]
        assert request.system == "You build React components."
        assert [tool["name"] for tool in request.tools] == ["editor", "manager"]
        assert request.messages == history
        assert request.max_tokens == 500

    @pytest.mark.asyncio
    async def test_tool_error_is_fed_back_and_run_continues(self, make_orchestrator, collect_events, history):
        file_system = VirtualFileSystem()
        file_system.write("/App.jsx", "foo\nfoo\n", create=True)
        orchestrator = make_orchestrator(
            [
                ScriptedTurn(
                    tool_calls=[
                        ToolCall(
                            name="editor",
                            call_id="call_1",
                            arguments={"command": "str_replace", "path": "/App.jsx", "old_str": "foo", "new_str": "bar"},
                        )
                    ]
                ),
                ScriptedTurn(text="The text was ambiguous, leaving it."),
            ],
            file_system=file_system,
        )

        events = await collect_events(orchestrator, history)

        completed = next(e for e in events if isinstance(e, ToolCallCompletedEvent))
        assert not completed.result.ok
        assert completed.result.error_kind == "AmbiguousMatch"
        assert not any(isinstance(e, ErrorEvent) for e in events)
        assert events[-1].reason == "completed"
        assert events[-1].files["/App.jsx"]["content"] == "foo\nfoo\n"
        # The second request sees the failed result
        second_request = orchestrator.backend.requests[1]
        assert second_request.messages[-1].tool_results[0].error_kind == "AmbiguousMatch"

    @pytest.mark.asyncio
    async def test_unknown_tool_becomes_error_result(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator(
            [
                ScriptedTurn(tool_calls=[ToolCall(name="shell", call_id="call_1", arguments={"cmd": "ls"})]),
                ScriptedTurn(text="ok"),
            ]
        )
        events = await collect_events(orchestrator, history)
        completed = next(e for e in events if isinstance(e, ToolCallCompletedEvent))
        assert completed.result.error_kind == "UnsupportedCommand"
        assert events[-1].status == "done"

    @pytest.mark.asyncio
    async def test_tool_calls_apply_in_order_within_a_turn(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator(
            [
                ScriptedTurn(
                    tool_calls=[
                        create_app_call("call_1"),
                        ToolCall(
                            name="editor",
                            call_id="call_2",
                            arguments={"command": "insert", "path": "/App.jsx", "insert_line": 0, "new_str": "// top"},
                        ),
                    ]
                ),
                ScriptedTurn(text="done"),
            ]
        )
        events = await collect_events(orchestrator, history)
        assert [e.id for e in events if isinstance(e, ToolCallCompletedEvent)] == ["call_1", "call_2"]
        assert events[-1].files["/App.jsx"]["content"] == "// top\n" + APP_SOURCE

    @pytest.mark.asyncio
    async def test_step_ceiling(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator([ScriptedTurn(tool_calls=[view_root_call("call")])], max_steps=3)

        events = await collect_events(orchestrator, history)

        finish = events[-1]
        assert finish.status == "aborted"
        assert finish.reason == "step_limit"
        assert finish.steps == 3
        assert len(orchestrator.backend.requests) == 3
        assert orchestrator.state is OrchestratorState.ABORTED

    @pytest.mark.asyncio
    async def test_step_ceiling_is_deterministic(self, make_orchestrator, collect_events, history):
        turns = [ScriptedTurn(text="looking", tool_calls=[view_root_call("call")])]
        first = await collect_events(make_orchestrator(turns, max_steps=2), history)
        second = await collect_events(make_orchestrator(turns, max_steps=2), history)
        assert [e.model_dump() for e in first] == [e.model_dump() for e in second]

    @pytest.mark.asyncio
    async def test_token_budget(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator(
            [ScriptedTurn(tool_calls=[view_root_call("call")], output_tokens=600)],
            max_output_tokens=1000,
        )

        events = await collect_events(orchestrator, history)

        finish = events[-1]
        assert finish.reason == "token_budget"
        assert finish.status == "aborted"
        assert finish.steps == 2
        assert finish.output_tokens == 1200
        assert [r.max_tokens for r in orchestrator.backend.requests] == [1000, 400]

    @pytest.mark.asyncio
    async def test_truncated_turn_stops_after_applying_its_tools(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator(
            [ScriptedTurn(text="partial", tool_calls=[create_app_call()], output_tokens=10, stop_reason="max_tokens")]
        )

        events = await collect_events(orchestrator, history)

        assert events[-1].reason == "token_budget"
        assert events[-1].steps == 1
        assert "/App.jsx" in events[-1].files

    @pytest.mark.asyncio
    async def test_final_answer_within_budget_completes(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator([ScriptedTurn(text="All done", output_tokens=100)], max_output_tokens=100)
        events = await collect_events(orchestrator, history)
        assert events[-1].reason == "completed"

    @pytest.mark.asyncio
    async def test_backend_failure(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator(
            [
                ScriptedTurn(tool_calls=[create_app_call()]),
                BackendTransportError("connection reset by peer"),
            ]
        )

        events = await collect_events(orchestrator, history)

        errors = [e for e in events if isinstance(e, ErrorEvent)]
        assert [e.message for e in errors] == [BACKEND_FAILURE_MESSAGE]
        finish = events[-1]
        assert finish.status == "aborted"
        assert finish.reason == "error"
        assert finish.steps == 2
        # Work done before the failure is kept
        assert finish.files["/App.jsx"]["content"] == APP_SOURCE

    @pytest.mark.asyncio
    async def test_partial_text_is_kept_on_backend_failure(self, make_orchestrator, collect_events, history):
        class FlakyBackend(Backend):
            async def stream_turn(self, request):
                yield TextDelta(text="Half an ans")
                raise BackendTransportError("stream dropped")

        orchestrator = make_orchestrator(FlakyBackend())
        events = await collect_events(orchestrator, history)

        assert isinstance(events[0], TextDeltaEvent)
        assert isinstance(events[1], ErrorEvent)
        assert events[-1].reason == "error"
        assert events[-1].messages[-1].text == "Half an ans"

    @pytest.mark.asyncio
    async def test_unexpected_backend_exception_takes_the_error_path(self, make_orchestrator, history):
        class BrokenBackend(Backend):
            async def stream_turn(self, request):
                yield TextDelta(text="Part")
                raise OSError("connection reset")

        hook = MagicMock()
        hook.on_finish = AsyncMock()
        orchestrator = make_orchestrator(BrokenBackend(), persistence_hook=hook)

        events = [event async for event in orchestrator.run(history, project_id="project-1")]

        assert [type(e) for e in events] == [TextDeltaEvent, ErrorEvent, FinishEvent]
        assert events[1].message == BACKEND_FAILURE_MESSAGE
        assert events[-1].reason == "error"
        assert events[-1].messages[-1].text == "Part"
        assert orchestrator.state is OrchestratorState.ABORTED
        hook.on_finish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_without_end_of_turn_is_a_failure(self, make_orchestrator, collect_events, history):
        class TruncatedBackend(Backend):
            async def stream_turn(self, request):
                yield TextDelta(text="no end marker")

        orchestrator = make_orchestrator(TruncatedBackend())
        events = await collect_events(orchestrator, history)
        assert events[-1].reason == "error"

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator([ScriptedTurn(text="never sent")])
        cancel_event = asyncio.Event()
        cancel_event.set()

        events = await collect_events(orchestrator, history, cancel_event=cancel_event)

        assert len(events) == 1
        assert events[0].reason == "cancelled"
        assert events[0].steps == 0
        assert orchestrator.backend.requests == []

    @pytest.mark.asyncio
    async def test_cancelled_mid_stream_drops_pending_tool_calls(self, make_orchestrator, history):
        orchestrator = make_orchestrator([ScriptedTurn(text="hello world", tool_calls=[create_app_call()])])
        cancel_event = asyncio.Event()

        events = []
        async for event in orchestrator.run(history, cancel_event=cancel_event):
            events.append(event)
            if isinstance(event, TextDeltaEvent):
                cancel_event.set()

        assert [e.text for e in events if isinstance(e, TextDeltaEvent)] == ["hello"]
        assert events[-1].reason == "cancelled"
        assert events[-1].files == {}
        assert events[-1].messages[-1].text == "hello"
        assert not any(isinstance(e, ToolCallStartedEvent) for e in events)

    @pytest.mark.asyncio
    async def test_cancelled_between_steps(self, make_orchestrator, history):
        orchestrator = make_orchestrator([ScriptedTurn(tool_calls=[create_app_call()]), ScriptedTurn(text="done")])
        cancel_event = asyncio.Event()

        events = []
        async for event in orchestrator.run(history, cancel_event=cancel_event):
            events.append(event)
            if isinstance(event, StepFinishedEvent):
                cancel_event.set()

        assert events[-1].reason == "cancelled"
        assert events[-1].steps == 1
        assert "/App.jsx" in events[-1].files

    @pytest.mark.asyncio
    async def test_persistence_hook_called_once_before_finish(self, make_orchestrator, history):
        hook = MagicMock()
        hook.on_finish = AsyncMock()
        orchestrator = make_orchestrator(
            [ScriptedTurn(tool_calls=[create_app_call()]), ScriptedTurn(text="done")], persistence_hook=hook
        )

        events = []
        async for event in orchestrator.run(history, project_id="project-1"):
            if isinstance(event, FinishEvent):
                hook.on_finish.assert_awaited_once()
            events.append(event)

        project_id, messages, files = hook.on_finish.await_args.args
        assert project_id == "project-1"
        assert messages == events[-1].messages
        assert files == events[-1].files

    @pytest.mark.asyncio
    async def test_persistence_hook_skipped_without_project(self, make_orchestrator, collect_events, history):
        hook = MagicMock()
        hook.on_finish = AsyncMock()
        orchestrator = make_orchestrator([ScriptedTurn(text="done")], persistence_hook=hook)
        await collect_events(orchestrator, history)
        hook.on_finish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_affect_response(self, make_orchestrator, collect_events, history):
        hook = MagicMock()
        hook.on_finish = AsyncMock(side_effect=RuntimeError("database unavailable"))
        orchestrator = make_orchestrator([ScriptedTurn(text="done")], persistence_hook=hook)

        events = await collect_events(orchestrator, history, project_id="project-1")

        assert events[-1].status == "done"
        assert not any(isinstance(e, ErrorEvent) for e in events)
        hook.on_finish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_stream_still_finalizes(self, make_orchestrator, history):
        hook = MagicMock()
        hook.on_finish = AsyncMock()
        orchestrator = make_orchestrator(
            [ScriptedTurn(text="one two three", tool_calls=[create_app_call()])], persistence_hook=hook
        )

        async with aclosing(orchestrator.run(history, project_id="project-1")) as stream:
            async for event in stream:
                break

        assert orchestrator.state is OrchestratorState.ABORTED
        hook.on_finish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_single_use(self, make_orchestrator, collect_events, history):
        orchestrator = make_orchestrator([ScriptedTurn(text="done")])
        await collect_events(orchestrator, history)
        with pytest.raises(RuntimeError):
            await orchestrator.run(history).__anext__()

    def test_rejects_invalid_limits(self):
        file_system = VirtualFileSystem()
        with pytest.raises(ValueError):
            AgentOrchestrator(backend=MagicMock(), file_system=file_system, tool_executor=MagicMock(), max_steps=0)
        with pytest.raises(ValueError):
            AgentOrchestrator(
                backend=MagicMock(), file_system=file_system, tool_executor=MagicMock(), max_output_tokens=0
            )

    def test_default_system_prompt(self):
        orchestrator = AgentOrchestrator(
            backend=MagicMock(), file_system=VirtualFileSystem(), tool_executor=MagicMock()
        )
        assert "/App.jsx" in orchestrator.system_prompt
        assert orchestrator.state is OrchestratorState.IDLE
