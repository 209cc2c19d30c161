from typing import Protocol

from dotenv import load_dotenv

# load_dotenv MUST run before the langfuse import so the LANGFUSE_* env vars
# are visible when the Langfuse client initializes.
load_dotenv()

from langfuse.openai import AsyncOpenAI  # type: ignore[attr-defined]

from libra.config import DEFAULT_LLM_BASE_URL, DEFAULT_LLM_TIMEOUT, DEFAULT_MODEL, Settings
from libra.result import Err, Ok, Result


class TextGenerator(Protocol):
    """Anything that turns a prompt into reply text, e.g. ``AsyncLLMClient``."""

    async def generate_text(self, prompt: str) -> Result[str, Exception]: ...


class AsyncLLMClient:
    """An asynchronous client for an OpenAI-compatible chat-completions API.

    Uses ``from langfuse.openai import AsyncOpenAI`` as the drop-in replacement,
    which automatically instruments every ``completions.create()`` call as a
    Langfuse generation. Each call is a single request/response; no
    conversation state is kept between calls.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_LLM_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_LLM_TIMEOUT,
    ):
        self.model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Result["AsyncLLMClient", Exception]:
        match settings.llm_api_key:
            case str(key) if key.strip():
                return Ok(
                    cls(
                        api_key=key.strip(),
                        base_url=settings.llm_base_url,
                        model=settings.model,
                        timeout=settings.llm_timeout,
                    )
                )
            case _:
                return Err(
                    ValueError("OPENROUTER_API_KEY not found or empty in environment.")
                )

    @classmethod
    def from_env(cls) -> Result["AsyncLLMClient", Exception]:
        """Creates a client by loading the OPENROUTER_API_KEY from the .env file."""
        match Settings.from_env():
            case Ok(settings):
                return cls.from_settings(settings)
            case Err(e):
                return Err(e)

    async def generate_text(
        self,
        prompt: str,
        model: str | None = None,
    ) -> Result[str, Exception]:
        """Send ``prompt`` as a single user message and return the reply text."""
        try:
            response = await self._client.chat.completions.create(
                model=model or self.model,
                messages=[{"role": "user", "content": prompt}],
            )

            match response.choices:
                case [choice, *_]:
                    match choice.message.content:
                        case str(content):
                            return Ok(content)
                        case _:
                            return Err(
                                RuntimeError("Model response content was not a string.")
                            )
                case []:
                    return Err(RuntimeError("Model returned no choices."))
                case _:
                    return Err(RuntimeError("Unexpected response format from model."))

        except Exception as e:
            return Err(e)
