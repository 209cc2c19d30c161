# mypy: ignore-errors
import pytest

from libra.config import Settings
from libra.llm import AsyncLLMClient
from libra.result import Err, Ok


class MockChoice:
    def __init__(self, content):
        self.message = type("MockMessage", (), {"content": content})


class MockChatCompletions:
    def __init__(self, choices):
        self._choices = choices
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return type("MockResponse", (), {"choices": self._choices})


class MockChat:
    def __init__(self, choices):
        self.completions = MockChatCompletions(choices)


class MockAsyncOpenAI:
    def __init__(self, choices):
        self.chat = MockChat(choices)


@pytest.mark.asyncio
async def test_generate_text_sends_single_user_message() -> None:
    client = AsyncLLMClient("fake_key", model="test/model")
    client._client = MockAsyncOpenAI([MockChoice("Dune, 1984, Sapiens")])

    result = await client.generate_text("Recommend three books")

    match result:
        case Ok(content):
            assert content == "Dune, 1984, Sapiens"
        case Err(e):
            pytest.fail(f"Expected Ok, got Err: {e}")
    [call] = client._client.chat.completions.calls
    assert call["model"] == "test/model"
    assert call["messages"] == [{"role": "user", "content": "Recommend three books"}]


@pytest.mark.asyncio
async def test_generate_text_model_override() -> None:
    client = AsyncLLMClient("fake_key")
    client._client = MockAsyncOpenAI([MockChoice("ok")])

    await client.generate_text("hi", model="other/model")

    assert client._client.chat.completions.calls[0]["model"] == "other/model"


@pytest.mark.asyncio
async def test_generate_text_empty_choices() -> None:
    client = AsyncLLMClient("fake_key")
    client._client = MockAsyncOpenAI([])

    result = await client.generate_text("Say hello")

    match result:
        case Ok(content):
            pytest.fail(f"Expected Err, got Ok: {content}")
        case Err(e):
            assert isinstance(e, RuntimeError)
            assert str(e) == "Model returned no choices."


@pytest.mark.asyncio
async def test_generate_text_non_string_content() -> None:
    client = AsyncLLMClient("fake_key")
    client._client = MockAsyncOpenAI([MockChoice(None)])

    result = await client.generate_text("Say hello")

    assert isinstance(result, Err)
    assert str(result.error) == "Model response content was not a string."


@pytest.mark.asyncio
async def test_generate_text_exception_handling() -> None:
    client = AsyncLLMClient("fake_key")

    class BrokenMockChatCompletions:
        async def create(self, **kwargs):
            raise ConnectionError("API is down")

    client._client.chat.completions = BrokenMockChatCompletions()

    result = await client.generate_text("Say hello")

    match result:
        case Ok(content):
            pytest.fail(f"Expected Err, got Ok: {content}")
        case Err(e):
            assert isinstance(e, ConnectionError)
            assert str(e) == "API is down"


def test_from_settings_without_key() -> None:
    settings = Settings(supabase_url=None, supabase_key=None, access_token=None, llm_api_key=None)

    result = AsyncLLMClient.from_settings(settings)

    assert isinstance(result, Err)
    assert "OPENROUTER_API_KEY" in str(result.error)


def test_from_settings_uses_configured_model() -> None:
    settings = Settings(
        supabase_url=None,
        supabase_key=None,
        access_token=None,
        llm_api_key="sk-test",
        model="test/model",
    )

    match AsyncLLMClient.from_settings(settings):
        case Ok(client):
            assert client.model == "test/model"
        case Err(e):
            pytest.fail(f"Expected Ok, got Err: {e}")
