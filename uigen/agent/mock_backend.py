"""
Deterministic backend used when no API key is configured.

It walks through a fixed four step plan: scaffold a component, refine it,
write `/App.jsx`, then answer. Every tool call it issues goes through the real
tools, so the resulting tree is a usable project.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing_extensions import override

from uigen.agent.backend import Backend, BackendEvent, BackendRequest, EndOfTurn, TextDelta, ToolCallRequest
from uigen.models.messages import Message
from uigen.tools.base import ToolCall

logger = logging.getLogger(__name__)

TOKENS_PER_TOOL_CALL = 40

COMPONENT_TEMPLATES: dict[str, str] = {
    "ContactForm": """import React, { useState } from 'react';

export default function ContactForm() {
  const [form, setForm] = useState({ name: '', email: '', message: '' });

  const update = (field) => (e) => setForm({ ...form, [field]: e.target.value });

  return (
    <form className="space-y-4 p-6 bg-white rounded-xl shadow">
      <h2 className="text-2xl font-bold">Contact Us</h2>
      <input className="w-full border rounded px-3 py-2" placeholder="Name" value={form.name} onChange={update('name')} />
      <input className="w-full border rounded px-3 py-2" placeholder="Email" value={form.email} onChange={update('email')} />
      <textarea className="w-full border rounded px-3 py-2" placeholder="Message" value={form.message} onChange={update('message')} />
      <button type="submit" className="px-4 py-2 bg-emerald-600 text-white rounded">Send</button>
    </form>
  );
}""",
    "Card": """import React from 'react';

export default function Card({ title = 'Welcome', description = 'A small card component.' }) {
  return (
    <div className="p-6 bg-white rounded-2xl shadow">
      <h3 className="text-2xl font-bold">{title}</h3>
      <p className="text-stone-600">{description}</p>
    </div>
  );
}""",
    "Counter": """import React, { useState } from 'react';

export default function Counter() {
  const [count, setCount] = useState(0);

  return (
    <div className="flex flex-col items-center p-6 bg-white rounded-xl shadow">
      <h2 className="text-2xl font-bold">Counter</h2>
      <span className="text-4xl my-4">{count}</span>
      <div className="flex gap-2">
        <button className="px-4 py-2 bg-rose-500 text-white rounded" onClick={() => setCount(count - 1)}>-</button>
        <button className="px-4 py-2 bg-emerald-500 text-white rounded" onClick={() => setCount(count + 1)}>+</button>
      </div>
    </div>
  );
}""",
}

APP_TEMPLATE = """import React from 'react';
import {name} from '@/components/{name}';

export default function App() {{
  return (
    <div className="min-h-screen flex items-center justify-center bg-stone-100 p-4">
      <{name} />
    </div>
  );
}}"""


@dataclass
class ScriptedTurn:
    """One canned model turn: some text and any number of tool calls."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    output_tokens: int | None = None
    stop_reason: str | None = None


async def emit_turn(turn: ScriptedTurn, chunk_delay: float = 0.0) -> AsyncIterator[BackendEvent]:
    """Stream a canned turn word by word, followed by its tool calls."""
    for index, word in enumerate(turn.text.split(" ") if turn.text else []):
        yield TextDelta(text=word if index == 0 else f" {word}")
        if chunk_delay:
            await asyncio.sleep(chunk_delay)
    for tool_call in turn.tool_calls:
        yield ToolCallRequest(tool_call=tool_call)

    output_tokens = turn.output_tokens
    if output_tokens is None:
        output_tokens = len(turn.text.split()) + TOKENS_PER_TOOL_CALL * len(turn.tool_calls)
    stop_reason = turn.stop_reason or ("tool_use" if turn.tool_calls else "end_turn")
    yield EndOfTurn(output_tokens=output_tokens, stop_reason=stop_reason)


def pick_component(prompt: str) -> str:
    lowered = prompt.lower()
    if "form" in lowered:
        return "ContactForm"
    if "card" in lowered:
        return "Card"
    return "Counter"


def steps_since_last_user_message(messages: list[Message]) -> tuple[int, str]:
    """Return the number of assistant turns after the latest user message, and its text."""
    steps = 0
    for message in reversed(messages):
        if message.role == "user":
            return steps, message.text
        if message.role == "assistant":
            steps += 1
    return steps, ""


class FallbackBackend(Backend):
    """Offline stand-in for a real model; see module docstring."""

    name = "fallback"

    def __init__(self, chunk_delay: float = 0.0) -> None:
        self.chunk_delay = chunk_delay

    def plan_turn(self, messages: list[Message]) -> ScriptedTurn:
        step, prompt = steps_since_last_user_message(messages)
        component = pick_component(prompt)
        component_path = f"/components/{component}.jsx"

        match step:
            case 0:
                return ScriptedTurn(
                    text=f"I'll create a {component} component for you.",
                    tool_calls=[
                        ToolCall(
                            name="editor",
                            call_id=f"fallback_{step}",
                            arguments={
                                "command": "create",
                                "path": component_path,
                                "file_text": COMPONENT_TEMPLATES[component],
                            },
                        )
                    ],
                )
            case 1:
                return ScriptedTurn(
                    text="Let me refine the heading styles.",
                    tool_calls=[
                        ToolCall(
                            name="editor",
                            call_id=f"fallback_{step}",
                            arguments={
                                "command": "str_replace",
                                "path": component_path,
                                "old_str": 'className="text-2xl font-bold',
                                "new_str": 'className="text-2xl font-black tracking-tight',
                            },
                        )
                    ],
                )
            case 2:
                return ScriptedTurn(
                    text="Now I'll wire it into the App entry point.",
                    tool_calls=[
                        ToolCall(
                            name="editor",
                            call_id=f"fallback_{step}",
                            arguments={
                                "command": "create",
                                "path": "/App.jsx",
                                "file_text": APP_TEMPLATE.format(name=component),
                            },
                        )
                    ],
                )
            case _:
                return ScriptedTurn(
                    text=(
                        f"The {component} component is ready in {component_path} and rendered from /App.jsx. "
                        "This is a static response because no API key is configured."
                    )
                )

    @override
    async def stream_turn(self, request: BackendRequest) -> AsyncIterator[BackendEvent]:
        turn = self.plan_turn(request.messages)
        logger.debug(f"Fallback backend emitting turn with {len(turn.tool_calls)} tool call(s)")
        async for event in emit_turn(turn, self.chunk_delay):
            yield event
