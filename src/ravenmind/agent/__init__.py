"""Agent orchestration: the tool-calling loop and its helpers."""

from ravenmind.agent.loop import AgentResponse, Orchestrator, ThreadContext, UserIdentity
from ravenmind.agent.parsing import parse_tool_call

__all__ = ["AgentResponse", "Orchestrator", "ThreadContext", "UserIdentity", "parse_tool_call"]
