"""
HTTP server definition for the component generation chat service.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from uigen.agent.backend import Backend
from uigen.agent.orchestrator import AgentOrchestrator
from uigen.agent.persistence import PersistenceHook
from uigen.filesystem.codec import deserialize
from uigen.filesystem.errors import InvalidSnapshot
from uigen.models.events import ErrorEvent
from uigen.models.messages import Message
from uigen.utils.config import ServiceConfig
from uigen.utils.dependencies import (
    build_orchestrator,
    close_backend_provider,
    get_backend_provider,
    get_base_config,
    get_persistence_hook,
)

# Get a module-level logger
logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal error occurred while generating the response."


class ChatRequest(BaseModel):
    """Body of a chat request: prior conversation plus the client's file snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Message] = Field(default_factory=list)
    files: dict[str, Any] = Field(default_factory=dict)
    project_id: str | None = Field(default=None, alias="projectId")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs the app; on shutdown closes the shared backend client."""
    yield
    await close_backend_provider()


def build_server() -> FastAPI:
    """Build and configure the FastAPI application.

    Returns:
        A FastAPI instance with CORS enabled for any origin.
    """
    app = FastAPI(
        title="uigen",
        description="Virtual file system agent for component generation",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",  # Allow any origin
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = build_server()


async def _encode_events(orchestrator: AgentOrchestrator, request: ChatRequest) -> AsyncIterator[str]:
    """Serialize orchestration events as newline delimited JSON."""
    try:
        async for event in orchestrator.run(request.messages, project_id=request.project_id):
            yield event.model_dump_json() + "\n"
    except Exception as e:
        logger.error(f"Chat stream failed: {e}", exc_info=True)
        yield ErrorEvent(message=INTERNAL_ERROR_MESSAGE).model_dump_json() + "\n"


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/chat", response_model=None)
async def chat(
    request: ChatRequest,
    config: ServiceConfig = Depends(get_base_config),
    backend: Backend = Depends(get_backend_provider),
    persistence_hook: PersistenceHook | None = Depends(get_persistence_hook),
) -> StreamingResponse | JSONResponse:
    """
    Runs the agent against the supplied snapshot and streams its events.

    Every line of the response body is one JSON event; the last one is always
    the `finish` event with the final messages and file snapshot.
    """
    logger.info(
        f"Chat request with {len(request.messages)} messages, {len(request.files)} snapshot entries, "
        f"project={request.project_id or '-'}"
    )
    try:
        file_system = deserialize(request.files)
    except InvalidSnapshot as e:
        # Details stay in the log; the caller only learns that the snapshot was rejected.
        logger.error(f"Rejected chat request with invalid snapshot: {e.message}")
        return JSONResponse(status_code=400, content={"error": "Invalid file snapshot."})

    if request.project_id and persistence_hook is None:
        logger.warning(f"No persistence hook configured; project {request.project_id} will not be saved.")

    orchestrator = build_orchestrator(file_system, backend, config, persistence_hook)
    return StreamingResponse(_encode_events(orchestrator, request), media_type="application/x-ndjson")
