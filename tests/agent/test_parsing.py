"""Tests for tool call extraction from model output."""

from ravenmind.agent.parsing import clean_response, parse_tool_call, strip_control_tokens


class TestStripControlTokens:
    """Test removal of template tokens and reasoning blocks."""

    def test_removes_think_block(self):
        assert strip_control_tokens("<think>let me see</think>The answer is 4.") == "The answer is 4."

    def test_removes_unterminated_think_block(self):
        assert strip_control_tokens("Partial answer <think>still going") == "Partial answer"

    def test_removes_chat_template_tokens(self):
        text = "<|im_start|>Hello<|im_end|><|endoftext|><|eot_id|>"
        assert strip_control_tokens(text) == "Hello"

    def test_plain_text_untouched(self):
        assert strip_control_tokens("  Just text  ") == "Just text"


class TestParseToolCall:
    """Test the extractor chain."""

    def test_json_fence(self):
        call = parse_tool_call('```json\n{"tool": "web_search", "arguments": {"query": "python"}}\n```')

        assert call is not None
        assert call.name == "web_search"
        assert call.arguments == {"query": "python"}

    def test_unlabelled_fence(self):
        call = parse_tool_call('Sure.\n```\n{"tool": "get_time", "arguments": {}}\n```')

        assert call is not None
        assert call.name == "get_time"

    def test_bare_object_with_nested_arguments(self):
        call = parse_tool_call(
            'I will call {"tool": "remember", "arguments": {"fact": "likes {braces}", "category": "fact"}} now'
        )

        assert call is not None
        assert call.name == "remember"
        assert call.arguments == {"fact": "likes {braces}", "category": "fact"}

    def test_missing_arguments_default_to_empty(self):
        call = parse_tool_call('```json\n{"tool": "get_time"}\n```')

        assert call is not None
        assert call.arguments == {}

    def test_first_valid_candidate_wins(self):
        text = (
            '```json\n{"not_a_tool": 1}\n```\n'
            '```json\n{"tool": "calculate", "arguments": {"expression": "1+1"}}\n```'
        )
        call = parse_tool_call(text)

        assert call is not None
        assert call.name == "calculate"

    def test_plain_answer_is_not_a_call(self):
        assert parse_tool_call("The capital of France is Paris.") is None

    def test_malformed_json_is_not_a_call(self):
        assert parse_tool_call('```json\n{"tool": "calculate", \n```') is None

    def test_non_string_tool_rejected(self):
        assert parse_tool_call('{"tool": 42, "arguments": {}}') is None

    def test_other_json_is_not_a_call(self):
        assert parse_tool_call('Here is data: {"name": "value"}') is None


class TestCleanResponse:
    """Test removal of leftover tool syntax from answers."""

    def test_removes_json_fence(self):
        text = 'Done!\n```json\n{"tool": "think", "arguments": {}}\n```'
        assert clean_response(text) == "Done!"

    def test_removes_bare_tool_object(self):
        assert clean_response('Answer {"tool": "think", "arguments": {}}') == "Answer"

    def test_keeps_other_json(self):
        assert clean_response('Config: {"debug": true}') == 'Config: {"debug": true}'

    def test_keeps_fenced_example_json(self):
        """Test a JSON example the user asked for survives cleanup."""
        text = 'Here is an example config:\n```json\n{"name": "demo", "port": 8080}\n```\nSave it as config.json.'
        assert clean_response(text) == text
