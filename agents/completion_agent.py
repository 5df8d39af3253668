from asyncio import wait_for, TimeoutError
from typing import List, Optional, Sequence, Tuple

from pydantic_ai import Agent, RunContext
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)

from configurations.config import (
    COMPLETION_TIMEOUT,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    GEMINI_MODEL_NAME,
    google_api_key,
)
from models.conversation import Message


class CompletionError(Exception):
    """The completion service failed or returned nothing usable."""


class CompletionTimeout(CompletionError):
    """The completion service did not answer in time."""


def _default_model():
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    provider = GoogleProvider(api_key=google_api_key())
    return GoogleModel(GEMINI_MODEL_NAME, provider=provider)


def system_instruction(messages: Sequence[Message], instruction: str) -> str:
    """Client-supplied system messages are appended to the engine's instruction."""
    extra_system = [m.content for m in messages if m.role == "system"]
    return "\n\n".join([instruction] + extra_system)


def build_history(messages: Sequence[Message], instruction: str) -> Tuple[List[ModelMessage], str]:
    """
    Split a chat transcript into pydantic_ai message history plus the
    prompt for this run (the latest user message).

    The instruction leads the history whenever there is one; with no history
    the agent's dynamic system prompt supplies it instead.
    """
    system_text = system_instruction(messages, instruction)

    chat = [m for m in messages if m.role != "system"]
    last_user = max((i for i, m in enumerate(chat) if m.role == "user"), default=None)
    if last_user is None:
        raise CompletionError("No user message to answer")

    history: List[ModelMessage] = []
    pending: List[str] = []
    for message in chat[:last_user]:
        if message.role == "user":
            pending.append(message.content)
            continue
        if pending:
            history.append(ModelRequest(parts=[UserPromptPart(content=t) for t in pending]))
            pending = []
        history.append(ModelResponse(parts=[TextPart(content=message.content)]))

    if history:
        if isinstance(history[0], ModelRequest):
            history[0] = ModelRequest(parts=[SystemPromptPart(content=system_text), *history[0].parts])
        else:
            history.insert(0, ModelRequest(parts=[SystemPromptPart(content=system_text)]))

    # User turns with no assistant answer in between go out as one prompt
    prompt = "\n\n".join(pending + [chat[last_user].content])
    return history, prompt


class CompletionClient:
    """
    Thin adapter over a pydantic_ai Agent: one instruction, an ordered
    message list, generation parameters in, one text completion out.
    """

    def __init__(self, model=None, timeout: float = COMPLETION_TIMEOUT):
        self._model = model
        self._agent: Optional[Agent] = None
        self.timeout = timeout

    def _get_agent(self) -> Agent:
        if self._agent is None:
            agent = Agent(
                self._model or _default_model(),
                output_type=str,
                deps_type=str,
            )

            @agent.system_prompt
            def instruction(ctx: RunContext[str]) -> str:
                return ctx.deps

            self._agent = agent
        return self._agent

    async def complete(
        self,
        messages: Sequence[Message],
        instruction: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: Optional[float] = None,
    ) -> str:
        history, prompt = build_history(messages, instruction)
        system_text = system_instruction(messages, instruction)
        agent = self._get_agent()
        try:
            result = await wait_for(
                agent.run(
                    prompt,
                    message_history=history or None,
                    deps=system_text,
                    model_settings={"max_tokens": max_tokens, "temperature": temperature},
                ),
                timeout=timeout or self.timeout,
            )
        except TimeoutError:
            raise CompletionTimeout("Completion service timed out")
        except CompletionError:
            raise
        except Exception as e:
            raise CompletionError(str(e)) from e

        text = (result.output or "").strip()
        if not text:
            raise CompletionError("Completion service returned an empty reply")
        return text
