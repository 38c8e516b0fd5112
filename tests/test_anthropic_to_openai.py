"""Tests for Anthropic Messages -> OpenAI Chat Completions response translation."""

import json

import pytest

from translator import translate_request, translate_response
from translator.anthropic_to_openai import (
    map_finish_reason,
    translate_usage,
    translate_models_list,
)


def _anthropic_response(content, stop_reason='end_turn', usage=None):
    return {
        'id': 'msg_123',
        'type': 'message',
        'role': 'assistant',
        'model': 'claude-upstream',
        'content': content,
        'stop_reason': stop_reason,
        'stop_sequence': None,
        'usage': usage or {'input_tokens': 10, 'output_tokens': 5},
    }


class TestTranslateResponse:

    def test_simple_text(self):
        result = translate_response(_anthropic_response([{'type': 'text', 'text': 'Hi!'}]), 'gpt-4')

        assert result['object'] == 'chat.completion'
        assert result['model'] == 'gpt-4'
        assert len(result['choices']) == 1
        choice = result['choices'][0]
        assert choice['index'] == 0
        assert choice['finish_reason'] == 'stop'
        assert choice['message'] == {'role': 'assistant', 'content': 'Hi!'}
        assert result['id'].startswith('chatcmpl-')
        assert isinstance(result['created'], int)

    def test_upstream_model_used_without_requested_model(self):
        result = translate_response(_anthropic_response([{'type': 'text', 'text': 'x'}]))

        assert result['model'] == 'claude-upstream'

    def test_text_blocks_concatenate(self):
        result = translate_response(_anthropic_response([
            {'type': 'text', 'text': 'Hello, '},
            {'type': 'text', 'text': 'world'},
        ]), 'gpt-4')

        assert result['choices'][0]['message']['content'] == 'Hello, world'

    def test_tool_use_only_has_null_content(self):
        result = translate_response(_anthropic_response([
            {'type': 'tool_use', 'id': 'toolu_1', 'name': 'lookup', 'input': {'q': 'x'}},
        ], stop_reason='tool_use'), 'gpt-4')

        message = result['choices'][0]['message']
        assert message['content'] is None
        assert message['tool_calls'] == [{
            'id': 'toolu_1',
            'type': 'function',
            'function': {'name': 'lookup', 'arguments': '{"q": "x"}'},
        }]
        assert result['choices'][0]['finish_reason'] == 'tool_calls'

    def test_text_and_tool_use(self):
        result = translate_response(_anthropic_response([
            {'type': 'text', 'text': 'Checking'},
            {'type': 'tool_use', 'id': 'toolu_1', 'name': 'lookup', 'input': {}},
        ], stop_reason='tool_use'), 'gpt-4')

        message = result['choices'][0]['message']
        assert message['content'] == 'Checking'
        assert json.loads(message['tool_calls'][0]['function']['arguments']) == {}

    def test_empty_content_is_empty_string(self):
        result = translate_response(_anthropic_response([]), 'gpt-4')

        assert result['choices'][0]['message']['content'] == ''

    def test_thinking_goes_to_reasoning_content(self):
        result = translate_response(_anthropic_response([
            {'type': 'thinking', 'thinking': 'Let me think. ', 'signature': 'sig'},
            {'type': 'thinking', 'thinking': 'Done.'},
            {'type': 'text', 'text': 'Answer'},
        ]), 'gpt-4')

        message = result['choices'][0]['message']
        assert message['content'] == 'Answer'
        assert message['reasoning_content'] == 'Let me think. Done.'
        assert '_thinking' not in message

    def test_no_reasoning_field_without_thinking(self):
        result = translate_response(_anthropic_response([{'type': 'text', 'text': 'x'}]), 'gpt-4')

        assert 'reasoning_content' not in result['choices'][0]['message']

    def test_unknown_blocks_are_ignored(self):
        result = translate_response(_anthropic_response([
            {'type': 'redacted_thinking', 'data': 'xx'},
            {'type': 'server_tool_use', 'id': 's1'},
            {'type': 'text', 'text': 'ok'},
        ]), 'gpt-4')

        assert result['choices'][0]['message'] == {'role': 'assistant', 'content': 'ok'}

    def test_each_call_gets_a_fresh_id(self):
        body = _anthropic_response([{'type': 'text', 'text': 'x'}])

        assert translate_response(body, 'gpt-4')['id'] != translate_response(body, 'gpt-4')['id']

    def test_request_response_round_trip_finish_reasons(self):
        translate_request({'model': 'gpt-4', 'messages': [{'role': 'user', 'content': 'hi'}]})

        for stop_reason in ('end_turn', 'stop_sequence', 'max_tokens', 'tool_use', 'pause_turn', None):
            result = translate_response(_anthropic_response([], stop_reason=stop_reason), 'gpt-4')
            assert result['choices'][0]['finish_reason'] in ('stop', 'length', 'tool_calls')


class TestFinishReason:

    @pytest.mark.parametrize('stop_reason,expected', [
        ('end_turn', 'stop'),
        ('stop_sequence', 'stop'),
        ('max_tokens', 'length'),
        ('tool_use', 'tool_calls'),
        ('refusal', 'stop'),
        (None, 'stop'),
    ])
    def test_mapping(self, stop_reason, expected):
        assert map_finish_reason(stop_reason) == expected


class TestUsage:

    def test_basic_usage(self):
        assert translate_usage({'input_tokens': 10, 'output_tokens': 5}) == {
            'prompt_tokens': 10,
            'completion_tokens': 5,
            'total_tokens': 15,
        }

    def test_cache_read_tokens(self):
        assert translate_usage({
            'input_tokens': 10,
            'output_tokens': 5,
            'cache_read_input_tokens': 3,
        }) == {
            'prompt_tokens': 10,
            'completion_tokens': 5,
            'total_tokens': 15,
            'prompt_tokens_details': {'cached_tokens': 3},
        }

    def test_cache_creation_only(self):
        usage = translate_usage({'input_tokens': 1, 'output_tokens': 1, 'cache_creation_input_tokens': 7})

        assert usage['prompt_tokens_details'] == {'cached_tokens': 0}

    def test_zero_cache_counts_omit_details(self):
        usage = translate_usage({
            'input_tokens': 1,
            'output_tokens': 1,
            'cache_read_input_tokens': 0,
            'cache_creation_input_tokens': 0,
        })

        assert 'prompt_tokens_details' not in usage

    def test_missing_usage(self):
        assert translate_usage(None) == {'prompt_tokens': 0, 'completion_tokens': 0, 'total_tokens': 0}


class TestModelsList:

    def test_reshape(self):
        result = translate_models_list({'data': [
            {'id': 'claude-sonnet-4-5', 'type': 'model', 'display_name': 'Sonnet'},
            {'id': 'gemini-3-pro'},
            {'display_name': 'no id'},
        ]}, created=1700000000)

        assert result == {
            'object': 'list',
            'data': [
                {'id': 'claude-sonnet-4-5', 'object': 'model', 'created': 1700000000, 'owned_by': 'antigravity'},
                {'id': 'gemini-3-pro', 'object': 'model', 'created': 1700000000, 'owned_by': 'antigravity'},
            ]
        }

    def test_empty_upstream_list(self):
        assert translate_models_list({}) == {'object': 'list', 'data': []}
