"""Chat endpoint answering questions about an ingested repository."""
import logging
from typing import AsyncIterator, Dict, Iterable, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..core.config import settings
from ..core.rate_limiter import limiter
from ..core.services import Services, get_services
from ..rag import retrieval
from .schemas import ChatRequest, ConversationMessage, failure_response

logger = logging.getLogger(__name__)

router = APIRouter()

SYSTEM_PROMPT = """You are a helpful technical assistant analyzing a codebase. Every
question is to be answered in context with computer science, coding, software technologies.
You have access to relevant code snippets and documentation from the repository.
Answer questions about the codebase based on the provided context. If something is not in the context, say so.
You should be able to answer questions related to the technology, requirements and architecture.
A user can ask: "Where are the API endpoints defined?" or "What is the flow of data from the login
page to the database?" The answers should be detailed and not exceeding 2 paragraphs at a time.

IMPORTANT: Format your responses using markdown for better readability:
- Use **bold** for important terms and concepts
- Use numbered lists (1. 2. 3.) for steps or multiple items
- Use bullet points for features or characteristics
- Use code formatting with backticks for file names, function names, or code snippets
- Use headings (##) to organize complex responses
- Use separate paragraphs for different topics

Context from codebase:
"""

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Content-Type-Options": "nosniff",
}


def build_system_prompt(context: str) -> str:
    return f"{SYSTEM_PROMPT}{context}"


def build_messages(
    history: Iterable[ConversationMessage] | None, message: str, limit: int
) -> List[Dict[str, str]]:
    """Return the trimmed conversation with the new user message appended."""

    turns = [{"role": item.role, "content": item.content} for item in history or []]
    if limit > 0:
        turns = turns[-limit:]
    turns.append({"role": "user", "content": message})
    return turns


@router.post("", response_model=None, summary="Stream an answer about the ingested codebase")
@limiter.limit(settings.RATE_LIMIT_CHAT)
async def chat(
    request: Request,
    payload: ChatRequest,
    services: Services = Depends(get_services),
) -> StreamingResponse | JSONResponse:
    """Retrieve context for the question and stream the model's answer as plain text."""

    namespace = payload.namespace or ""
    try:
        matches = await retrieval.retrieve(
            payload.message,
            namespace,
            embedder=services.embedder,
            store=services.store,
            top_k=settings.RETRIEVAL_TOP_K,
        )
        context = retrieval.build_context(matches)
        messages = build_messages(
            payload.conversation_history, payload.message, settings.CHAT_HISTORY_LIMIT
        )
        tokens = services.completions.stream_chat(build_system_prompt(context), messages)
        # Pull the first token so upstream failures still produce a JSON error.
        try:
            first_token = await anext(tokens)
        except StopAsyncIteration:
            first_token = ""
    except Exception as exc:
        logger.exception("Chat failed for namespace=%s", namespace or "(default)")
        return failure_response("Chat failed", exc)

    async def text_stream() -> AsyncIterator[str]:
        if first_token:
            yield first_token
        try:
            async for token in tokens:
                yield token
        except Exception:
            logger.exception("Completion stream failed for namespace=%s", namespace or "(default)")

    return StreamingResponse(
        text_stream(), media_type="text/plain; charset=utf-8", headers=STREAM_HEADERS
    )
