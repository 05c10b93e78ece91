"""OpenAI chat provider."""

import logging
import os

from src.insights.llm.base import SYSTEM_PROMPT, ChatProvider

logger = logging.getLogger(__name__)


class OpenAIChatProvider(ChatProvider):
    """Chat provider using the OpenAI API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            msg = "OPENAI_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for AI insights. "
                "Install with: pip install 'talent-matching[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.AsyncOpenAI(api_key=api_key)
        use_model = model or self.default_model
        use_system = system if system is not None else SYSTEM_PROMPT

        logger.info("Requesting insights from OpenAI (%s)...", use_model)
        response = await client.chat.completions.create(
            model=use_model,
            messages=[
                {"role": "system", "content": use_system},
                {"role": "user", "content": prompt},
            ],
        )

        return response.choices[0].message.content or ""
