import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from agents.completion_agent import CompletionError, CompletionTimeout
from executors.chat import ChatExecutor
from models.conversation import ChatReply, ChatRequest, Message

REQUEST = ChatRequest(messages=[Message(role="user", content="hi")], userId="user-1")


def _executor(timeout=None, **handle_kwargs):
    orchestrator = MagicMock()
    orchestrator.handle_turn = AsyncMock(**handle_kwargs)
    return ChatExecutor(orchestrator, timeout=timeout)


def _status(executor) -> int:
    with pytest.raises(HTTPException) as exc:
        asyncio.run(executor.execute(REQUEST))
    return exc.value.status_code


def test_reply_is_returned():
    reply = ChatReply(replyText="Hi, I'm Anita.")
    assert asyncio.run(_executor(return_value=reply).execute(REQUEST)) == reply


def test_completion_timeout_maps_to_504():
    assert _status(_executor(side_effect=CompletionTimeout("slow"))) == 504


def test_turn_timeout_maps_to_504():
    async def slow(request):
        await asyncio.sleep(1)

    assert _status(_executor(timeout=0.01, side_effect=slow)) == 504


def test_completion_failure_maps_to_500():
    assert _status(_executor(side_effect=CompletionError("bad gateway"))) == 500


def test_unexpected_failure_maps_to_500():
    assert _status(_executor(side_effect=KeyError("x"))) == 500
