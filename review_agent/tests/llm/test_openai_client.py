# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the OpenAI client's message conversion and response parsing."""
import pytest

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from review_agent.src.config import Settings
from review_agent.src.agents import ToolCallingAnalysisProvider
from review_agent.src.llm import OpenAIModelClient
from review_agent.src.tools import ReadFile
from review_agent.src.types.agent_types import AnalysisStatus
from review_agent.src.types.conversation_types import (
    AssistantTurn,
    SystemTurn,
    ToolCallRequest,
    ToolTurn,
    UserTurn,
)


class FakeEncoding:
    def encode(self, text, disallowed_special=()):
        return text.split()


@pytest.fixture
def api():
    client = Mock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def model_client(api):
    with patch("review_agent.src.llm.openai_client.tiktoken") as tiktoken:
        tiktoken.encoding_for_model.side_effect = KeyError("unknown model")
        tiktoken.get_encoding.return_value = FakeEncoding()
        yield OpenAIModelClient("local-model", max_input_tokens=4096, client=api)


def completion(content=None, tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def native_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


class TestPrepareMessages:
    def test_roles_and_tool_calls(self, model_client):
        turns = [
            SystemTurn(content="sys"),
            UserTurn(content="diff"),
            AssistantTurn(
                content=None,
                tool_calls=[
                    ToolCallRequest(id="c1", tool_name="read_file", raw_arguments='{"file_path": "a.py"}'),
                    ToolCallRequest(id="c2", tool_name="list_directory", raw_arguments={"relative_path": "."}),
                ],
            ),
            ToolTurn(tool_call_id="c1", name="read_file", content="contents"),
        ]
        messages = model_client._prepare_messages(turns)

        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[1] == {"role": "user", "content": "diff"}
        assistant = messages[2]
        assert assistant["content"] == ""
        assert assistant["tool_calls"][0]["function"] == {
            "name": "read_file",
            "arguments": '{"file_path": "a.py"}',
        }
        assert assistant["tool_calls"][1]["function"]["arguments"] == '{"relative_path": "."}'
        assert messages[3] == {"role": "tool", "tool_call_id": "c1", "content": "contents"}

    def test_plain_assistant_turn_has_no_tool_calls_key(self, model_client):
        messages = model_client._prepare_messages([AssistantTurn(content="done")])
        assert messages == [{"role": "assistant", "content": "done"}]


@pytest.mark.asyncio
class TestSendConversation:
    async def test_parses_tool_calls(self, model_client, api):
        api.chat.completions.create.return_value = completion(
            content="Checking",
            tool_calls=[native_call("c1", "read_file", '{"file_path": "a.py"}'), native_call("c2", "think_about_task", "")],
            finish_reason="tool_calls",
        )
        response = await model_client.send_conversation([UserTurn(content="diff")], tools=[ReadFile])

        assert response.content == "Checking"
        assert response.has_tool_calls
        assert [c.tool_name for c in response.tool_calls] == ["read_file", "think_about_task"]
        assert response.tool_calls[0].raw_arguments == '{"file_path": "a.py"}'
        # Missing arguments are normalised to an empty object
        assert response.tool_calls[1].raw_arguments == "{}"

        kwargs = api.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "local-model"
        assert kwargs["tools"][0]["function"]["name"] == "read_file"

    async def test_no_tools_omits_tools_argument(self, model_client, api):
        api.chat.completions.create.return_value = completion(content="review")
        response = await model_client.send_conversation([UserTurn(content="diff")])
        assert response.content == "review"
        assert not response.has_tool_calls
        assert "tools" not in api.chat.completions.create.call_args.kwargs

    async def test_empty_choices(self, model_client, api):
        api.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(RuntimeError, match="no choices"):
            await model_client.send_conversation([UserTurn(content="diff")])

    async def test_token_counting(self, model_client):
        assert model_client.max_input_tokens == 4096
        assert await model_client.count_tokens("") == 0
        assert await model_client.count_tokens("three short words") == 3
        total = await model_client.count_conversation_tokens(
            [SystemTurn(content="a b"), UserTurn(content="c")]
        )
        assert total == 3


@pytest.mark.uses_llm
@pytest.mark.asyncio
class TestLiveModel:
    """Talks to the endpoint configured in the environment."""

    async def test_plain_reply(self):
        client = OpenAIModelClient.from_settings(Settings())
        response = await client.send_conversation([UserTurn(content="Reply with the word ok")])
        assert response.content

    @pytest.mark.slow
    async def test_review_of_small_diff(self, tmp_path):
        (tmp_path / "calc.py").write_text("def add(a, b):\n    return a - b\n")
        diff = (
            "diff --git a/calc.py b/calc.py\n"
            "--- a/calc.py\n"
            "+++ b/calc.py\n"
            "@@ -1,2 +1,2 @@\n"
            " def add(a, b):\n"
            "-    return a + b\n"
            "+    return a - b\n"
        )
        settings = Settings()
        provider = ToolCallingAnalysisProvider(
            OpenAIModelClient.from_settings(settings), settings, repo_root=tmp_path
        )
        result = await provider.analyze(diff)
        assert result.status in (AnalysisStatus.SUCCESS, AnalysisStatus.EXHAUSTED)
        assert result.analysis
