from asyncio import wait_for, TimeoutError
from fastapi import HTTPException

from agents.completion_agent import CompletionError, CompletionTimeout
from configurations.config import COMPLETION_TIMEOUT, PERSISTENCE_TIMEOUT
from executors.base import BaseExecutor
from models.conversation import ChatReply, ChatRequest
from services.turn_orchestrator import TurnOrchestrator


class ChatExecutor(BaseExecutor):
    """
    Executes one chat-completion turn.
    Upstream timeout -> 504, any other failure -> 500.
    """

    def __init__(self, orchestrator: TurnOrchestrator, timeout: float = None):
        self.orchestrator = orchestrator
        # Room for the completion call plus the datastore round trips around it
        self.timeout = timeout or COMPLETION_TIMEOUT + 6 * PERSISTENCE_TIMEOUT

    async def execute(self, request: ChatRequest) -> ChatReply:
        try:
            try:
                return await wait_for(
                    self.orchestrator.handle_turn(request),
                    timeout=self.timeout,
                )
            except (TimeoutError, CompletionTimeout):
                raise HTTPException(
                    status_code=504,
                    detail="Completion service timed out",
                )

        except HTTPException:
            raise
        except CompletionError as e:
            raise HTTPException(
                status_code=500,
                detail=f"Completion service failed: {e}",
            )
        except Exception as e:
            raise HTTPException(
                status_code=500,
                detail=str(e),
            )
