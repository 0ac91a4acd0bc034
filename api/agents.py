"""Agent endpoints.

Routes:
- POST /agents/{agent_id}/generate - Whole answer as JSON
- POST /agents/{agent_id}/stream - Answer streamed as Server-Sent Events (SSE)

Both validate the prompt (400) and the agent id (404) before doing any
work. Once the stream has started, failures are sent in-band as an
``error`` frame.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from agent.product_agent import get_agent
from api.errors import error_response
from api.schemas import ErrorResponse, GenerateRequest, GenerateResponse
from core.container import ServiceContainer
from core.exceptions import InvalidRequestError, RAGError
from streaming.delivery import SSE_HEADERS, sse_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["agents"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _require_prompt(body: GenerateRequest) -> str:
    if not body.prompt or not body.prompt.strip():
        raise InvalidRequestError("Prompt is required", field="prompt")
    return body.prompt


@router.post(
    "/{agent_id}/generate", response_model=GenerateResponse, responses=_ERROR_RESPONSES
)
def generate(
    agent_id: str,
    body: GenerateRequest,
    container: ServiceContainer = Depends(get_container),
) -> GenerateResponse | JSONResponse:
    """Run the agent and return the whole answer.

    Raises:
        InvalidRequestError: missing prompt or invalid meta (400)
        AgentNotFoundError: unknown agent id (404)
    """
    prompt = _require_prompt(body)
    agent = get_agent(container.agents, agent_id)

    try:
        result = agent.generate(prompt, body.meta)
    except RAGError:
        raise
    except Exception as e:
        logger.exception("Generate failed for agent %s", agent_id)
        return error_response(500, str(e) or "Internal server error")

    return GenerateResponse(text=result.answer, meta=body.meta)


@router.post("/{agent_id}/stream", responses=_ERROR_RESPONSES)
async def stream(
    agent_id: str,
    body: GenerateRequest,
    container: ServiceContainer = Depends(get_container),
) -> StreamingResponse:
    """Stream the agent's answer.

    SSE Format (one frame per event, ``done`` or ``error`` last):
        data: {"type": "delta", "data": "..."}

        data: {"type": "done", "data": null}

        data: {"type": "error", "data": "..."}
    """
    prompt = _require_prompt(body)
    agent = get_agent(container.agents, agent_id)
    fragments = agent.stream(prompt, body.meta)

    logger.info("Starting stream for agent %s", agent_id)
    return StreamingResponse(
        sse_stream(fragments, max_buffered=container.settings.stream_buffer_size),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
