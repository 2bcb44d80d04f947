"""Extracting tool calls from plain-text model output.

The model calls tools by emitting a JSON object ``{"tool": ..., "arguments": ...}``,
usually inside a fenced code block. Extractors are tried in order and the
first one that yields an object with a string ``"tool"`` wins.
"""

import json
import re
from collections.abc import Callable, Iterator
from typing import Any

from ravenmind.tools.base import ToolCall

_JSON_FENCE = re.compile(r"```json\s*\n?([\s\S]*?)\n?```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[a-zA-Z]*\s*\n?([\s\S]*?)\n?```")

_CONTROL_TOKENS = re.compile(r"<\|(?:im_start|im_end|endoftext|eot_id)\|>")
_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
# An unterminated think block swallows the rest of the output
_OPEN_THINK = re.compile(r"<think>[\s\S]*$", re.IGNORECASE)

_decoder = json.JSONDecoder()


def strip_control_tokens(text: str) -> str:
    """Remove chat-template tokens and reasoning blocks from model output."""
    text = _THINK_BLOCK.sub("", text)
    text = _OPEN_THINK.sub("", text)
    text = _CONTROL_TOKENS.sub("", text)
    return text.strip()


def _fenced(pattern: re.Pattern) -> Callable[[str], Iterator[str]]:
    def extract(text: str) -> Iterator[str]:
        for match in pattern.finditer(text):
            yield match.group(1).strip()

    return extract


def _bare_objects(text: str) -> Iterator[str]:
    """Yield each decodable JSON object in the text that mentions "tool"."""
    index = text.find("{")
    while index != -1:
        try:
            _, end = _decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            index = text.find("{", index + 1)
            continue
        candidate = text[index:end]
        if '"tool"' in candidate:
            yield candidate
        index = text.find("{", end)


EXTRACTORS: tuple[Callable[[str], Iterator[str]], ...] = (
    _fenced(_JSON_FENCE),
    _fenced(_ANY_FENCE),
    _bare_objects,
)


def _to_tool_call(candidate: str) -> ToolCall | None:
    try:
        parsed: Any = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("tool"), str):
        return None
    arguments = parsed.get("arguments")
    if arguments is None:
        arguments = {}
    return ToolCall(name=parsed["tool"], arguments=arguments)


def parse_tool_call(response: str) -> ToolCall | None:
    """Find the tool call in a model response.

    Args:
        response: Model output with control tokens already stripped

    Returns:
        The first valid ToolCall, or None if the response is a final answer
    """
    for extract in EXTRACTORS:
        for candidate in extract(response):
            call = _to_tool_call(candidate)
            if call is not None:
                return call
    return None


def _drop_tool_fence(match: re.Match) -> str:
    return "" if _to_tool_call(match.group(1).strip()) is not None else match.group(0)


def clean_response(response: str) -> str:
    """Remove leftover tool-call syntax from a final answer.

    Fenced or bare JSON that is not a tool call is content and stays.
    """
    text = _JSON_FENCE.sub(_drop_tool_fence, response)
    for candidate in list(_bare_objects(text)):
        if _to_tool_call(candidate) is not None:
            text = text.replace(candidate, "")
    return text.strip()
