"""
Unit Tests - Results Assistant
"""
import json

import pytest
from botocore.exceptions import ClientError

from smartsupply.assistant import AssistantSession, build_assistant_context, build_system_prompt
from smartsupply.assistant.context import GREETING_MESSAGE
from smartsupply.assistant.session import NOT_CONFIGURED_MESSAGE
from smartsupply.config.settings import AssistantSettings
from smartsupply.models import ProductResult, ProductStatus


class FakeBedrockRuntime:
    """Records converse_stream calls and replays canned chunks"""

    def __init__(self, chunks=None, error=None):
        self.chunks = chunks or []
        self.error = error
        self.calls = []

    def converse_stream(self, **kwargs):
        self.calls.append(json.loads(json.dumps(kwargs)))
        if self.error is not None:
            raise self.error
        events = [{"messageStart": {"role": "assistant"}}]
        events += [{"contentBlockDelta": {"delta": {"text": chunk}, "contentBlockIndex": 0}} for chunk in self.chunks]
        events.append({"messageStop": {"stopReason": "end_turn"}})
        return {"stream": iter(events)}


@pytest.fixture
def results():
    return [
        ProductResult(
            id=f"P{i}",
            name=f"Product {i}",
            average_weekly_sales=i / 3,
            current_stock=float(i),
            ideal_stock=float(2 * i),
            units_to_order=i,
            status=ProductStatus.FIXED if i == 0 else ProductStatus.NORMAL,
        )
        for i in range(25)
    ]


@pytest.fixture
def assistant_settings():
    return AssistantSettings(enabled=True, model_id="test-model", max_tokens=200, temperature=0.2, context_limit=20)


class TestAssistantContext:
    """Tests for the assistant's data snapshot"""

    def test_context_is_limited(self, results):
        context = build_assistant_context(results, limit=20)

        assert len(context) == 20
        assert context[0] == {
            "ID": "P0",
            "Name": "Product 0",
            "average_weekly_sales": 0.0,
            "current_stock": 0.0,
            "ideal_stock": 0.0,
            "units_to_order": 0,
            "status": "Fixed",
            "error": None,
        }
        assert context[4]["average_weekly_sales"] == 1.33

    def test_system_prompt_embeds_context(self, results):
        prompt = build_system_prompt(build_assistant_context(results, limit=2))

        assert "supply chain analyst" in prompt
        assert '"ID": "P1"' in prompt
        assert "P2" not in prompt


class TestAssistantSession:
    """Tests for AssistantSession"""

    def test_streams_reply(self, results, assistant_settings):
        """Test chunks are yielded as they arrive and recorded in history"""
        client = FakeBedrockRuntime(chunks=["You have ", "25 products."])
        session = AssistantSession(results, settings=assistant_settings, bedrock_runtime_client=client)

        reply = list(session.send("How many products?"))

        assert reply == ["You have ", "25 products."]
        assert session.history == [
            {"role": "user", "content": [{"text": "How many products?"}]},
            {"role": "assistant", "content": [{"text": "You have 25 products."}]},
        ]

        call = client.calls[0]
        assert call["modelId"] == "test-model"
        assert call["inferenceConfig"] == {"maxTokens": 200, "temperature": 0.2}
        assert call["system"][0]["text"] == session.system_prompt

    def test_reply_is_lazy(self, results, assistant_settings):
        """Test nothing is sent until the reply is consumed"""
        client = FakeBedrockRuntime(chunks=["ok"])
        session = AssistantSession(results, settings=assistant_settings, bedrock_runtime_client=client)

        reply = session.greet()
        assert client.calls == []

        assert "".join(reply) == "ok"
        assert client.calls[0]["messages"][0]["content"][0]["text"] == GREETING_MESSAGE

    def test_conversation_keeps_history(self, results, assistant_settings):
        client = FakeBedrockRuntime(chunks=["answer"])
        session = AssistantSession(results, settings=assistant_settings, bedrock_runtime_client=client)

        list(session.send("first"))
        list(session.send("second"))

        assert len(client.calls[1]["messages"]) == 3
        assert len(session.history) == 4

    def test_reply_closed_early_keeps_roles_alternating(self, results, assistant_settings):
        """Test a reply abandoned after one chunk does not leave two user turns"""
        client = FakeBedrockRuntime(chunks=["First ", "answer"])
        session = AssistantSession(results, settings=assistant_settings, bedrock_runtime_client=client)

        reply = session.send("q1")
        assert next(reply) == "First "
        reply.close()
        list(session.send("q2"))

        assert [m["role"] for m in client.calls[1]["messages"]] == ["user", "assistant", "user"]
        assert session.history[1] == {"role": "assistant", "content": [{"text": "First "}]}
        assert len(session.history) == 4

    def test_client_error_becomes_error_chunk(self, results, assistant_settings):
        """Test a failed call ends the stream with one error chunk"""
        error = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}},
            "ConverseStream",
        )
        client = FakeBedrockRuntime(error=error)
        session = AssistantSession(results, settings=assistant_settings, bedrock_runtime_client=client)

        reply = list(session.send("hello"))

        assert len(reply) == 1
        assert reply[0].startswith("Error: ")
        assert "AccessDeniedException" in reply[0]
        assert session.history == []

    def test_disabled_assistant(self, results):
        """Test a disabled assistant answers without calling Bedrock"""
        client = FakeBedrockRuntime(chunks=["never"])
        session = AssistantSession(
            results, settings=AssistantSettings(enabled=False), bedrock_runtime_client=client
        )

        assert list(session.send("hello")) == [NOT_CONFIGURED_MESSAGE]
        assert client.calls == []

    def test_results_are_not_modified(self, results, assistant_settings):
        before = [r.model_copy() for r in results]
        session = AssistantSession(
            results, settings=assistant_settings, bedrock_runtime_client=FakeBedrockRuntime(chunks=["x"])
        )

        list(session.send("change everything"))

        assert results == before
