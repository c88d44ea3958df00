"""
OpenAI generation backend.

Generates app source code through OpenAI chat completions and returns
it as an ordered artifact.
"""

from typing import Any, Optional

from openai import OpenAI

from ..core.errors import GenerationFailed
from ..core.generation import AppDetails, Artifact, build_messages


class OpenAIGenerationBackend:
    """GenerationBackend backed by the OpenAI chat completions API.

    API errors propagate unchanged; the orchestrator turns them into
    GenerationFailed with the original message.
    """

    def __init__(
        self,
        model: str,
        chunk_size: int = 1,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        """Initialize the backend.

        Args:
            model: OpenAI model name (required)
            chunk_size: Characters per delivered chunk
            timeout: Request timeout passed to the OpenAI client
            temperature: Sampling temperature (optional)
            max_tokens: Maximum tokens to generate (optional)

        Raises:
            ValueError: If model is missing/empty or chunk_size is not positive
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")

        self.model = model
        self.chunk_size = chunk_size
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = OpenAI(timeout=timeout) if timeout is not None else OpenAI()

    def generate(self, details: AppDetails, **kwargs: Any) -> Artifact:
        """Generate the app described by details.

        Args:
            details: Prompt parameters
            **kwargs: Additional OpenAI parameters

        Returns:
            Artifact holding the generated code in order

        Raises:
            GenerationFailed: If the response is filtered or empty
            OpenAI API errors: Propagated without modification
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=build_messages(details),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            **kwargs
        )

        if not response.choices:
            raise GenerationFailed("no content generated")

        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise GenerationFailed("content policy rejection")

        content = choice.message.content
        if not content or not content.strip():
            raise GenerationFailed("no content generated")

        return Artifact.from_text(content, self.chunk_size)
