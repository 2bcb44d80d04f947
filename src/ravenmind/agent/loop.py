"""Agent orchestration loop.

One call to ``Orchestrator.run`` handles one incoming chat message: security
pre-check, memory context assembly, then a bounded generate / parse / execute
loop that ends when the model answers without a tool call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ravenmind.agent.parsing import clean_response, parse_tool_call, strip_control_tokens
from ravenmind.agent.prompts import build_system_prompt
from ravenmind.llm.client import Message
from ravenmind.memory.context import ChatContext
from ravenmind.memory.schema import ConversationMessage
from ravenmind.tools.base import Attachment, ToolCall
from ravenmind.tools.image import GENERATE_IMAGE_TOOL
from ravenmind.tools.reasoning import THINK_TOOL

if TYPE_CHECKING:
    from ravenmind.config.schema import RavenmindConfig
    from ravenmind.llm.lifecycle import ModelLifecycleGate
    from ravenmind.memory.manager import MemoryManager
    from ravenmind.security.impersonation import ImpersonationDetector
    from ravenmind.security.permissions import ToolPermissionChecker
    from ravenmind.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = "I noticed something unusual in your message. Could you rephrase that?"
LLM_ERROR_MESSAGE = "I'm having trouble thinking right now. Please try again in a moment."
FALLBACK_HEADER = (
    "I've done extensive research but couldn't complete the task fully. Here's what I found:"
)
FALLBACK_APOLOGY = (
    "I'm sorry, I couldn't complete that request within my step limit. "
    "Could you try breaking it into smaller questions?"
)
EMPTY_RESPONSE = "I'm not sure how to respond to that. Could you rephrase?"
DUPLICATE_IMAGE_MESSAGE = (
    "An image has already been generated and attached to this response. "
    "Do not generate another image; reply to the user now."
)
UNKNOWN_TOOL_MESSAGE = "Error: Unknown tool."

# Tools whose output is kept for the max-iterations fallback
RESEARCH_TOOLS = frozenset(
    {"web_search", "fetch_url", "search_arxiv", "wikipedia_summary", "recall"}
)
RESEARCH_SNIPPET_CHARS = 500


@dataclass
class UserIdentity:
    """Who sent the message."""

    user_id: str
    display_name: str = ""
    username: str = ""


@dataclass
class ThreadContext:
    """Where the message was sent."""

    thread_id: str
    guild_id: str | None = None


@dataclass
class AgentResponse:
    """Outcome of one orchestrator run."""

    content: str
    tools_used: list[str] = field(default_factory=list)
    iterations: int = 0
    blocked: bool = False
    block_reason: str | None = None
    attachment: Attachment | None = None


@dataclass
class _Turn:
    """Mutable state of a single run."""

    messages: list[Message]
    iterations: int = 0
    think_calls: int = 0
    tools_used: list[str] = field(default_factory=list)
    research: list[str] = field(default_factory=list)
    attachment: Attachment | None = None

    def distinct_tools(self) -> list[str]:
        return list(dict.fromkeys(self.tools_used))


class Orchestrator:
    """Runs the tool-calling loop for chat messages.

    Every dependency is injected; see ``ravenmind.runtime.build_runtime``.
    """

    def __init__(
        self,
        gate: ModelLifecycleGate,
        memory: MemoryManager,
        permissions: ToolPermissionChecker,
        detector: ImpersonationDetector,
        dispatcher: ToolDispatcher,
        config: RavenmindConfig,
    ):
        """Initialize the orchestrator.

        Args:
            gate: Lifecycle gate in front of the text backend
            memory: Memory facade (context, persistence, extraction)
            permissions: Tool access policy
            detector: Impersonation and injection detector
            dispatcher: Tool executor
            config: Root configuration
        """
        self.gate = gate
        self.memory = memory
        self.permissions = permissions
        self.detector = detector
        self.dispatcher = dispatcher
        self.config = config
        self._background: set[asyncio.Task[Any]] = set()

    # -- entry point ------------------------------------------------------

    async def run(
        self,
        message: str,
        user: UserIdentity,
        thread: ThreadContext,
        *,
        max_iterations: int | None = None,
        temperature: float | None = None,
    ) -> AgentResponse:
        """Produce a reply to a chat message.

        Args:
            message: The user's message text
            user: Sender identity
            thread: Conversation thread
            max_iterations: Override for the non-think tool call budget
            temperature: Override for the sampling temperature

        Returns:
            AgentResponse; never raises for backend or tool failures
        """
        block_reason = self._security_check(message, user)
        if block_reason is not None:
            return AgentResponse(
                content=BLOCKED_MESSAGE,
                blocked=True,
                block_reason=block_reason,
            )

        max_iterations = max_iterations or self.config.agent.max_iterations
        if temperature is None:
            temperature = self.config.agent.temperature

        context = await self._build_context(message, user, thread)
        visible = self.permissions.filter_tools_for_user(self.dispatcher.catalog(), user.user_id)
        system_prompt = build_system_prompt([t.schema for t in visible], context.system_context)

        turn = _Turn(
            messages=[Message(role=m.role, content=m.content) for m in context.conversation_history]
            + [Message(role="user", content=message)]
        )
        await self._persist(user, thread, "user", message)

        while True:
            try:
                raw = await self.gate.generate(
                    system_prompt,
                    turn.messages,
                    temperature=temperature,
                    max_tokens=self.config.agent.max_tokens,
                )
            except Exception:
                logger.exception("Generation failed for user %s", user.user_id)
                return AgentResponse(
                    content=LLM_ERROR_MESSAGE,
                    tools_used=turn.distinct_tools(),
                    iterations=turn.iterations,
                    attachment=turn.attachment,
                )

            response = strip_control_tokens(raw)
            call = parse_tool_call(response)
            if call is None:
                return await self._finalize(message, clean_response(response), turn, user, thread)

            if call.name == THINK_TOOL:
                turn.think_calls += 1
                if turn.think_calls > self.config.agent.max_think_calls:
                    logger.warning("Think cap reached for user %s", user.user_id)
                    break
            else:
                if turn.iterations >= max_iterations:
                    break
                turn.iterations += 1

            await self._handle_call(call, response, turn, user)

        logger.info(
            "Falling back after %d iterations for user %s", turn.iterations, user.user_id
        )
        return await self._finalize(message, self._fallback_text(turn), turn, user, thread)

    # -- steps ------------------------------------------------------------

    def _security_check(self, message: str, user: UserIdentity) -> str | None:
        result = self.detector.detect(message, user.display_name, user.username)
        threshold = self.config.security.impersonation.block_threshold
        if not result.detected or result.confidence < threshold:
            return None

        descriptions = "; ".join(t.description for t in result.threats)
        logger.warning(
            "Blocked message from %s (confidence %.2f): %s",
            user.user_id,
            result.confidence,
            descriptions,
        )
        return f"Suspicious content detected (confidence {result.confidence:.2f})"

    async def _build_context(
        self, message: str, user: UserIdentity, thread: ThreadContext
    ) -> ChatContext:
        try:
            return await self.memory.build_context_for_chat(user.user_id, thread.thread_id, message)
        except Exception:
            logger.exception("Memory context unavailable for user %s", user.user_id)
            return ChatContext()

    async def _persist(self, user: UserIdentity, thread: ThreadContext, role: str, content: str) -> None:
        try:
            await self.memory.add_message(
                user.user_id, thread.thread_id, role, content, guild_id=thread.guild_id
            )
        except Exception:
            logger.exception("Failed to store %s message for %s", role, user.user_id)

    async def _handle_call(self, call: ToolCall, response: str, turn: _Turn, user: UserIdentity) -> None:
        """Run one tool call and append the assistant and tool turns."""
        turn.messages.append(Message(role="assistant", content=response))

        if call.name == GENERATE_IMAGE_TOOL and turn.attachment is not None:
            turn.messages.append(Message(role="tool", content=DUPLICATE_IMAGE_MESSAGE, name=call.name))
            return

        access = self.permissions.check_tool_access(user.user_id, call.name)
        self.permissions.log_tool_access(user.user_id, call.name, access)
        if not access.allowed:
            content = f"Error: {access.reason}" if access.visible else UNKNOWN_TOOL_MESSAGE
            turn.messages.append(Message(role="tool", content=content, name=call.name))
            return

        result = await self.dispatcher.dispatch(call, user.user_id)
        turn.tools_used.append(call.name)
        if result.attachment is not None and turn.attachment is None:
            turn.attachment = result.attachment

        text = result.to_model_text()
        if call.name in RESEARCH_TOOLS and result.success:
            turn.research.append(f"**{call.name}**: {text[:RESEARCH_SNIPPET_CHARS]}")
        turn.messages.append(Message(role="tool", content=text, name=call.name))

    def _fallback_text(self, turn: _Turn) -> str:
        if not turn.research:
            return FALLBACK_APOLOGY
        return FALLBACK_HEADER + "\n\n" + "\n\n".join(turn.research)

    async def _finalize(
        self,
        message: str,
        content: str,
        turn: _Turn,
        user: UserIdentity,
        thread: ThreadContext,
    ) -> AgentResponse:
        content = content or EMPTY_RESPONSE
        await self._persist(user, thread, "assistant", content)

        self._spawn(
            self.memory.check_and_trigger_summarization(user.user_id, thread.thread_id),
            "summarization check",
        )
        self._spawn(
            self.memory.add_from_conversation(
                user.user_id,
                [
                    ConversationMessage(role="user", content=message),
                    ConversationMessage(role="assistant", content=content),
                ],
            ),
            "memory extraction",
        )

        return AgentResponse(
            content=content,
            tools_used=turn.distinct_tools(),
            iterations=turn.iterations,
            attachment=turn.attachment,
        )

    # -- background work --------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> None:
        task = asyncio.create_task(self._guard(coro, label))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, Any], label: str) -> None:
        try:
            await coro
        except Exception:
            logger.warning("Background %s failed", label, exc_info=True)

    async def aclose(self) -> None:
        """Wait for outstanding background work."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
