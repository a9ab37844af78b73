# chat_routes.py
import logging
from typing import Optional

import openai
from fastapi import APIRouter, Depends, Request
from openai import AsyncOpenAI
from starlette.concurrency import run_in_threadpool

import config
from activity_logger import ActivityLogger, EventKind, get_activity_logger
from errors import AppError, ValidationError
from schemas import ChatRequest
from session_tokens import get_session_from_request

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_CONTEXT_CHARS = 20000

_client: Optional[AsyncOpenAI] = None


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=config.OPENAI_API_KEY)
    return _client


def build_messages(question: str, body: ChatRequest) -> list:
    repo_name = f"{body.owner}/{body.repo}" if body.owner and body.repo else "the repository"
    system = (
        f"You are a helpful assistant that explains the source code of {repo_name}. "
        "Answer questions using the repository context when it is provided."
    )

    context_parts = []
    if body.repoContext:
        if body.repoContext.structure:
            context_parts.append(f"Repository structure:\n{body.repoContext.structure}")
        if body.repoContext.readme:
            context_parts.append(f"README:\n{body.repoContext.readme}")
        for path, content in body.repoContext.taggedFiles.items():
            context_parts.append(f"File {path}:\n{content}")
    context = "\n\n".join(context_parts)[:MAX_CONTEXT_CHARS]

    messages = [{"role": "system", "content": system}]
    if context:
        messages.append({"role": "system", "content": context})
    messages.append({"role": "user", "content": question})
    return messages


@router.post("/api/chat")
async def chat(body: ChatRequest, request: Request,
               activity: ActivityLogger = Depends(get_activity_logger),
               client: AsyncOpenAI = Depends(get_openai_client)):
    """Answers a question about a repository and records it in the activity log"""
    question = (body.question or body.message).strip()
    if not question:
        raise ValidationError("Question is required")

    session = get_session_from_request(request)
    email = ((session.email if session else None) or body.email or "").strip()

    logged = False
    if email:
        result = await run_in_threadpool(
            activity.log_event, EventKind.CHAT_QUESTION, {"email": email, "question": question}
        )
        logged = result.success
        if not result.success:
            logger.warning(f"⚠️ Chat question for {email} was not logged: {result.error}")

    try:
        response = await client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=build_messages(question, body),
        )
    except openai.OpenAIError as e:
        logger.error(f"OpenAI error: {e}")
        raise AppError("Failed to get a response from the assistant") from e

    answer = response.choices[0].message.content
    return {"answer": answer, "logged": logged}
