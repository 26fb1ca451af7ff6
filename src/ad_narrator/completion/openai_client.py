"""
OpenAI Completion Client
========================

Production completion backend using the OpenAI chat completions API.

This client:
    - Sends the prompt and frames as a single multimodal user message
    - Streams the response and maps each chunk to CompletionChunk
    - Works with any OpenAI-compatible endpoint via base_url

Design Rules:
    - Fail fast on misconfiguration (missing API key)
    - Never leak provider types past this module
    - Transport errors become CompletionError
"""

import logging
import os
from typing import AsyncIterator, Optional, Sequence

import openai
from openai import AsyncOpenAI

from ad_narrator.completion.client import CompletionError
from ad_narrator.models.chunk import CompletionChunk
from ad_narrator.stream.frame import jpeg_data_url


logger = logging.getLogger(__name__)


def build_user_content(prompt: str, images: Sequence[bytes], detail: str) -> list:
    """
    Build the content parts of the user message.

    Args:
        prompt: Prompt text
        images: JPEG payloads in frame order
        detail: Image fidelity hint ("low", "high", "auto")

    Returns:
        List of content parts: one text part followed by one image part per frame
    """
    content = [{"type": "text", "text": prompt}]
    for jpeg in images:
        content.append({
            "type": "image_url",
            "image_url": {"url": jpeg_data_url(jpeg), "detail": detail},
        })
    return content


class OpenAICompletionClient:
    """
    Streaming chat completions over the OpenAI API.

    Attributes:
        model: Chat model name
        base_url: OpenAI-compatible endpoint (None = api.openai.com)
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key_env: str = "OPENAI_API_KEY",
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize OpenAI completion client.

        Args:
            model: Chat model name
            api_key: API key (falls back to the api_key_env variable)
            base_url: OpenAI-compatible endpoint
            api_key_env: Environment variable holding the API key
            client: Preconfigured AsyncOpenAI instance (tests)

        Raises:
            CompletionError: If no API key is available
        """
        self.model = model
        self.base_url = base_url

        if client is not None:
            self._client = client
        else:
            key = api_key or os.environ.get(api_key_env)
            if not key:
                raise CompletionError(
                    f"OpenAI backend requested but {api_key_env} is not set"
                )
            self._client = AsyncOpenAI(api_key=key, base_url=base_url)

        logger.info(
            f"OpenAICompletionClient initialized: model={model}, "
            f"base_url={base_url or 'default'}"
        )

    async def stream(
        self,
        prompt: str,
        images: Sequence[bytes],
        detail: str = "low",
        max_tokens: int = 80,
    ) -> AsyncIterator[CompletionChunk]:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": build_user_content(prompt, images, detail),
                }],
                max_tokens=max_tokens,
                stream=True,
            )
            # Closed on every exit, including aclose() after the terminal chunk
            async with response:
                async for chunk in response:
                    if not chunk.choices:
                        yield CompletionChunk()
                        continue

                    choice = chunk.choices[0]
                    delta = choice.delta.content if choice.delta is not None else None
                    yield CompletionChunk(
                        text_delta=delta,
                        finish_reason=choice.finish_reason,
                    )
        except openai.OpenAIError as e:
            raise CompletionError(str(e)) from e
