"""
Assistant Session

Conversation with a Bedrock model grounded on a snapshot of the results.
Replies are streamed chunk by chunk; the results themselves are never
modified.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from smartsupply.assistant.context import (
    GREETING_MESSAGE,
    build_assistant_context,
    build_system_prompt,
)
from smartsupply.config.settings import AssistantSettings, get_settings
from smartsupply.models import ProductResult

logger = structlog.get_logger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "The assistant is not configured. Set ASSISTANT_ENABLED=true and provide "
    "AWS credentials to enable it."
)


class AssistantSession:
    """
    Chat session over a fixed results snapshot.

    The Bedrock runtime client can be injected; otherwise one is created
    lazily on the first message.
    """

    def __init__(
        self,
        results: Sequence[ProductResult],
        settings: Optional[AssistantSettings] = None,
        bedrock_runtime_client: Optional[Any] = None,
    ):
        self.settings = settings or get_settings().assistant
        self.context = build_assistant_context(results, self.settings.context_limit)
        self.system_prompt = build_system_prompt(self.context)
        self.history: List[Dict[str, Any]] = []
        self._client = bedrock_runtime_client

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("bedrock-runtime", region_name=self.settings.region_name)
        return self._client

    def greet(self) -> Iterator[str]:
        return self.send(GREETING_MESSAGE)

    def send(self, message: str) -> Iterator[str]:
        """
        Send a user message and stream the reply.

        Yields:
            Text chunks as they arrive. A failed call ends the stream with a
            single "Error: ..." chunk.
        """
        if not self.enabled:
            yield NOT_CONFIGURED_MESSAGE
            return

        self.history.append({"role": "user", "content": [{"text": message}]})
        chunks: List[str] = []
        answered = False
        error: Optional[str] = None

        try:
            response = self.client.converse_stream(
                modelId=self.settings.model_id,
                system=[{"text": self.system_prompt}],
                messages=self.history,
                inferenceConfig={
                    "maxTokens": self.settings.max_tokens,
                    "temperature": self.settings.temperature,
                },
            )
            for event in response.get("stream", []):
                text = event.get("contentBlockDelta", {}).get("delta", {}).get("text")
                if text:
                    chunks.append(text)
                    yield text
            answered = True
        except (ClientError, BotoCoreError) as e:
            logger.error("Assistant request failed", model_id=self.settings.model_id, error=str(e))
            error = f"Error: {e}"
        finally:
            # roles must alternate; a reply cut short keeps what was streamed
            if answered or chunks:
                self.history.append({"role": "assistant", "content": [{"text": "".join(chunks)}]})
            else:
                self.history.pop()

        if error is not None:
            yield error
            return

        logger.debug("Assistant reply received", chunks=len(chunks), turns=len(self.history))
