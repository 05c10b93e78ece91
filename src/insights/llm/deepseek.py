"""DeepSeek chat provider (OpenAI-compatible API)."""

import logging
import os

from src.insights.llm.base import SYSTEM_PROMPT, ChatProvider

logger = logging.getLogger(__name__)

_DEEPSEEK_BASE_URL = "https://api.deepseek.com"


class DeepSeekChatProvider(ChatProvider):
    """Chat provider using DeepSeek via the OpenAI-compatible API."""

    @property
    def provider_id(self) -> str:
        return "deepseek"

    @property
    def default_model(self) -> str:
        return "deepseek-chat"

    @property
    def env_var(self) -> str:
        return "DEEPSEEK_API_KEY"

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        api_key = os.environ.get("DEEPSEEK_API_KEY")
        if not api_key:
            msg = "DEEPSEEK_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for DeepSeek (OpenAI-compatible API). "
                "Install with: pip install 'talent-matching[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.AsyncOpenAI(api_key=api_key, base_url=_DEEPSEEK_BASE_URL)
        use_model = model or self.default_model
        use_system = system if system is not None else SYSTEM_PROMPT

        logger.info("Requesting insights from DeepSeek (%s)...", use_model)
        response = await client.chat.completions.create(
            model=use_model,
            messages=[
                {"role": "system", "content": use_system},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
        )

        return response.choices[0].message.content or ""
