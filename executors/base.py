from abc import ABC, abstractmethod

from models.conversation import ChatReply, ChatRequest


class BaseExecutor(ABC):
    """
    Base contract for all executors.
    Executors take a validated ChatRequest and return a ChatReply.
    Error mapping to HTTP lives here; no routing or parsing.
    """

    @abstractmethod
    async def execute(self, request: ChatRequest) -> ChatReply:
        pass
