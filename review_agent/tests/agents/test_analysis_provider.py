# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""End-to-end tests of the top-level analysis with a scripted model."""
import asyncio
import pytest

from review_agent.src.config import Settings
from review_agent.src.agents import ToolCallingAnalysisProvider
from review_agent.src.agents.analysis_provider import (
    DIFF_TRUNCATED_MARKER,
    NO_CONTENT_MESSAGE,
    TOOLS_DISABLED_NOTICE,
)
from review_agent.src.tools import SubmitReview
from review_agent.src.exceptions import AnalysisCancelledError
from review_agent.src.utils.cancellation import CancellationToken
from review_agent.src.types.agent_types import AnalysisStatus
from review_agent.src.types.conversation_types import AssistantTurn, ToolTurn
from review_agent.tests.fakes import BlockingTool, EchoTool, ScriptedModelClient, call, reply

DIFF = """diff --git a/app/service.py b/app/service.py
index 1111111..2222222 100644
--- a/app/service.py
+++ b/app/service.py
@@ -1,4 +1,5 @@
 class Service:
     def handle(self, request):
-        return request
+        self.validate(request)
+        return request
"""

SERVICE_SOURCE = """class Service:
    def handle(self, request):
        self.validate(request)
        return request

    def validate(self, request):
        if request is None:
            raise ValueError("empty request")
"""

REVIEW = "## Summary\nThe change adds request validation. Looks good."


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture
def repo(tmp_path):
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "service.py").write_text(SERVICE_SOURCE)
    return tmp_path


def make_provider(client, repo, tools=None, **settings):
    return ToolCallingAnalysisProvider(client, make_settings(**settings), repo_root=repo, tools=tools)


@pytest.mark.asyncio
class TestAnalysisScenarios:
    async def test_submit_review_in_one_round_trip(self, repo):
        client = ScriptedModelClient([reply(call("submit_review", {"review_content": REVIEW}))])
        result = await make_provider(client, repo).analyze(DIFF)

        assert result.status == AnalysisStatus.SUCCESS
        assert result.analysis == REVIEW
        assert client.call_count == 1
        assert result.iterations == 1
        assert result.tool_calls.total_calls == 1
        assert result.tool_calls.analysis_completed
        assert result.end_time is not None

    async def test_find_symbol_then_submit(self, repo):
        client = ScriptedModelClient(
            [
                reply(call("find_symbol", {"name_path": "Service/validate", "include_body": True}, call_id="fs")),
                reply(call("submit_review", {"review_content": REVIEW}, call_id="sr")),
            ]
        )
        result = await make_provider(client, repo).analyze(DIFF)

        assert result.status == AnalysisStatus.SUCCESS
        assert result.analysis == REVIEW
        assert client.call_count == 2

        second_request = client.requests[1]
        tool_turn = second_request[-1]
        assert isinstance(tool_turn, ToolTurn)
        assert tool_turn.tool_call_id == "fs"
        assert "app/service.py:6-8" in tool_turn.content
        assert "raise ValueError" in tool_turn.content
        assert [c.tool_name for c in result.tool_calls.calls] == ["find_symbol", "submit_review"]

    async def test_exhausted_with_one_iteration(self, repo):
        client = ScriptedModelClient(
            [reply(call("list_directory", {"relative_path": "."}))], repeat_last=True
        )
        result = await make_provider(client, repo, MAX_ITERATIONS=1).analyze(DIFF)

        assert result.status == AnalysisStatus.EXHAUSTED
        assert client.call_count == 1
        assert result.tool_calls.total_calls == 1
        assert result.analysis.startswith("Analysis incomplete")
        assert not result.tool_calls.analysis_completed

    async def test_exhausted_surfaces_last_assistant_content(self, repo):
        client = ScriptedModelClient(
            [
                reply(call("list_directory", {"relative_path": "."}), content="Partial: service adds validation"),
                reply(call("list_directory", {"relative_path": "app"})),
            ]
        )
        result = await make_provider(client, repo, MAX_ITERATIONS=2).analyze(DIFF)
        assert result.status == AnalysisStatus.EXHAUSTED
        assert result.analysis == "Partial: service adds validation"

    async def test_plain_text_answer(self, repo):
        client = ScriptedModelClient([reply(content="Direct review text")])
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.SUCCESS
        assert result.analysis == "Direct review text"

    async def test_empty_answer_is_labelled(self, repo):
        client = ScriptedModelClient([reply(content="")])
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.SUCCESS
        assert result.analysis == NO_CONTENT_MESSAGE

    async def test_failed_tool_is_fed_back(self, repo):
        client = ScriptedModelClient(
            [
                reply(call("read_file", {"file_path": "app/missing.py"})),
                reply(call("submit_review", {"review_content": REVIEW})),
            ]
        )
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.SUCCESS
        assert client.requests[1][-1].content.startswith("Error: File not found")
        assert result.tool_calls.failed_calls == 1
        assert result.tool_calls.successful_calls == 1

    async def test_rejected_submission_does_not_terminate(self, repo):
        client = ScriptedModelClient(
            [
                reply(call("submit_review", {"review_content": "too short"})),
                reply(call("submit_review", {"review_content": REVIEW})),
            ]
        )
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.analysis == REVIEW
        assert client.call_count == 2

    async def test_sibling_calls_run_before_submission(self, repo):
        client = ScriptedModelClient(
            [
                reply(
                    call("read_file", {"file_path": "app/service.py"}),
                    call("submit_review", {"review_content": REVIEW}),
                )
            ]
        )
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.analysis == REVIEW
        assert [c.success for c in result.tool_calls.calls] == [True, True]

    async def test_model_error_is_named(self, repo):
        client = ScriptedModelClient([RuntimeError("upstream unavailable")])
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.ERROR
        assert result.analysis == "Error during analysis: upstream unavailable"
        assert result.tool_calls.analysis_error == "upstream unavailable"

    async def test_model_error_after_tools(self, repo):
        client = ScriptedModelClient(
            [reply(call("list_directory", {"relative_path": "app"})), TimeoutError()]
        )
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.ERROR
        assert result.analysis == "Error during analysis: TimeoutError"
        assert result.tool_calls.total_calls == 1

    async def test_malformed_model_response_is_an_error(self, repo):
        async def no_response(turns):
            return None

        client = ScriptedModelClient([no_response])
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.ERROR
        assert result.analysis.startswith("Error during analysis: Model client returned NoneType")
        assert result.end_time is not None

    async def test_unexpected_failure_is_an_error(self, repo):
        def broken_parser(diff_text):
            raise ValueError("bad hunk header")

        client = ScriptedModelClient([reply(content="unused")])
        provider = ToolCallingAnalysisProvider(
            client, make_settings(), repo_root=repo, diff_parser=broken_parser
        )
        result = await provider.analyze(DIFF)
        assert result.status == AnalysisStatus.ERROR
        assert result.analysis == "Error during analysis: bad hunk header"
        assert result.iterations == 0
        assert client.call_count == 0

    async def test_long_review_is_not_size_capped(self, repo):
        review = "## Summary\n" + "x" * 500
        client = ScriptedModelClient([reply(call("submit_review", {"review_content": review}))])
        result = await make_provider(client, repo, MAX_TOOL_RESPONSE_CHARS=100).analyze(DIFF)
        assert result.status == AnalysisStatus.SUCCESS
        assert result.analysis == review
        assert client.call_count == 1

    async def test_prompts_list_tools_and_diff(self, repo):
        client = ScriptedModelClient([reply(content="ok")])
        await make_provider(client, repo).analyze(DIFF, focus="error handling")
        system, user = client.requests[0][:2]
        assert "find_symbol" in system.content
        assert "app/service.py" in user.content
        assert "error handling" in user.content
        assert "submit_review" in client.tool_names[0]


@pytest.mark.asyncio
class TestCancellation:
    async def test_already_cancelled(self, repo):
        token = CancellationToken()
        token.cancel()
        client = ScriptedModelClient([reply(content="never")])
        with pytest.raises(AnalysisCancelledError):
            await make_provider(client, repo).analyze(DIFF, cancellation=token)
        assert client.call_count == 0

    async def test_cancelled_mid_batch_with_partial_results(self, repo):
        token = CancellationToken()
        client = ScriptedModelClient([reply(call("echo", {"text": "done early"}), call("block"))])
        provider = make_provider(client, repo, tools=[EchoTool, BlockingTool, SubmitReview])
        asyncio.get_running_loop().call_later(0.05, token.cancel, "user abort")
        with pytest.raises(AnalysisCancelledError, match="user abort"):
            await asyncio.wait_for(provider.analyze(DIFF, cancellation=token), timeout=2)

    async def test_cancelled_between_turns(self, repo):
        token = CancellationToken()

        async def cancel_after_tools(turns):
            token.cancel()
            return reply(content="should be discarded")

        client = ScriptedModelClient(
            [reply(call("list_directory", {"relative_path": "."})), cancel_after_tools]
        )
        with pytest.raises(AnalysisCancelledError):
            await make_provider(client, repo).analyze(DIFF, cancellation=token)


@pytest.mark.asyncio
class TestSessionIsolation:
    async def test_concurrent_analyses_share_no_state(self, repo):
        async def respond(turns):
            user = turns[1].content
            label = "ALPHA" if "ALPHA" in user else "BETA"
            tool_turns = [t for t in turns if isinstance(t, ToolTurn)]
            await asyncio.sleep(0.01)
            if len(tool_turns) < 2:
                return reply(call("list_directory", {"relative_path": "app"}))
            return reply(call("submit_review", {"review_content": f"Review for {label}: all checks done"}))

        client = ScriptedModelClient([respond], repeat_last=True)
        provider = make_provider(client, repo, MAX_TOOL_CALLS=3)

        alpha, beta = await asyncio.gather(
            provider.analyze(DIFF, focus="ALPHA"),
            provider.analyze(DIFF, focus="BETA"),
        )
        assert alpha.analysis == "Review for ALPHA: all checks done"
        assert beta.analysis == "Review for BETA: all checks done"
        for result in (alpha, beta):
            assert result.tool_calls.total_calls == 3
            assert result.tool_calls.failed_calls == 0


@pytest.mark.asyncio
class TestDiffSizeGate:
    async def test_small_diff_keeps_tools(self, repo):
        client = ScriptedModelClient([reply(content="ok")])
        await make_provider(client, repo).analyze(DIFF)
        assert client.tool_names[0]
        assert DIFF_TRUNCATED_MARKER not in client.requests[0][1].content

    async def test_large_diff_is_truncated_and_tools_disabled(self, repo):
        big_diff = DIFF + "".join(f"+line {i} {'x' * 60}\n" for i in range(6000))
        client = ScriptedModelClient([reply(content="Reviewed the visible part")], max_input_tokens=20_000)
        result = await make_provider(client, repo).analyze(big_diff)

        assert result.status == AnalysisStatus.SUCCESS
        assert client.tool_names[0] == []
        user_prompt = client.requests[0][1].content
        assert user_prompt.startswith(TOOLS_DISABLED_NOTICE)
        assert DIFF_TRUNCATED_MARKER in user_prompt
        assert len(user_prompt) < len(big_diff)
        assert "submit_review" not in client.requests[0][0].content

    async def test_counting_failure_keeps_original_diff(self, repo):
        class BrokenCounter(ScriptedModelClient):
            async def count_tokens(self, text):
                raise RuntimeError("tokenizer unavailable")

        client = BrokenCounter([reply(content="ok")])
        result = await make_provider(client, repo).analyze(DIFF)
        assert result.status == AnalysisStatus.SUCCESS
        assert client.tool_names[0]
        assert "self.validate(request)" in client.requests[0][1].content


@pytest.mark.asyncio
class TestConversationRecord:
    async def test_assistant_turns_carry_tool_calls(self, repo):
        client = ScriptedModelClient(
            [
                reply(call("get_symbols_overview", {"path": "app"}), content="Looking around"),
                reply(call("submit_review", {"review_content": REVIEW})),
            ]
        )
        await make_provider(client, repo).analyze(DIFF)
        assistant = client.requests[1][2]
        assert isinstance(assistant, AssistantTurn)
        assert assistant.content == "Looking around"
        assert assistant.tool_calls[0].tool_name == "get_symbols_overview"
        assert "1: Service (class)" in client.requests[1][3].content
