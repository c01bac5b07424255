"""Tests for the model providers and the provider registry."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from pydantic import SecretStr

from config.settings import Settings
from docketdive.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ValidationError,
)
from docketdive.providers import (
    GroqProvider,
    OllamaProvider,
    ProviderRegistry,
    build_provider_configs,
    create_provider_registry,
    parse_provider_name,
)
from docketdive.providers.base import ModelProvider
from docketdive.rag.models import ChatMessage, Prompt, ProviderConfig, ProviderName
from tests.conftest import FakeProvider, collect, make_config


@pytest.fixture
def prompt() -> Prompt:
    return Prompt(
        system="You are DocketDive.",
        messages=[ChatMessage(role="user", content="What is spoliation?")],
    )


def _ndjson(*objects: dict) -> bytes:
    return b"".join(json.dumps(o).encode() + b"\n" for o in objects)


def _ollama(handler) -> OllamaProvider:
    return OllamaProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class SlowProvider(ModelProvider):
    """Emits one chunk, then stalls."""

    name = ProviderName.LOCAL

    def __init__(self, delay: float):
        self.delay = delay
        self.closed = False

    async def _stream(self, prompt: Prompt, config: ProviderConfig) -> AsyncIterator[str]:
        try:
            yield "first"
            await asyncio.sleep(self.delay)
            yield "second"
        finally:
            self.closed = True


class FakeGroqStream:
    """Stands in for the openai AsyncStream of chat completion chunks."""

    def __init__(self, contents: list[str | None], error: Exception | None = None):
        self.contents = contents
        self.error = error
        self.close = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for content in self.contents:
            chunk = MagicMock()
            chunk.choices = [MagicMock()]
            chunk.choices[0].delta.content = content
            yield chunk
        if self.error is not None:
            raise self.error


def _groq_client(stream=None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=stream, side_effect=error)
    client.close = AsyncMock()
    return client


class TestModelProviderBase:
    """Token timeout and cleanup behaviour shared by all providers."""

    @pytest.mark.asyncio
    async def test_yields_non_empty_chunks(self, prompt):
        provider = FakeProvider(["a", "", "b"])

        assert await collect(provider.complete(prompt, make_config())) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_token_timeout(self, prompt):
        """A stall between chunks ends the stream with ProviderTimeoutError."""
        provider = SlowProvider(delay=1.0)
        received = []

        with pytest.raises(ProviderTimeoutError):
            async for chunk in provider.complete(prompt, make_config(token_timeout=0.05)):
                received.append(chunk)

        assert received == ["first"]
        assert provider.closed

    @pytest.mark.asyncio
    async def test_expired_deadline(self, prompt):
        provider = FakeProvider(["never"])
        deadline = asyncio.get_running_loop().time() - 1

        with pytest.raises(ProviderTimeoutError):
            await collect(provider.complete(prompt, make_config(), deadline=deadline))

    @pytest.mark.asyncio
    async def test_deadline_shortens_token_timeout(self, prompt):
        provider = SlowProvider(delay=1.0)
        deadline = asyncio.get_running_loop().time() + 0.05

        with pytest.raises(ProviderTimeoutError):
            await collect(provider.complete(prompt, make_config(token_timeout=30), deadline=deadline))

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, prompt):
        provider = FakeProvider(["partial"], error=ProviderError("boom"))

        with pytest.raises(ProviderError):
            await collect(provider.complete(prompt, make_config()))


class TestOllamaProvider:
    """Tests for OllamaProvider."""

    @pytest.mark.asyncio
    async def test_streams_message_content(self, prompt):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                content=_ndjson(
                    {"message": {"role": "assistant", "content": "Spoliation "}, "done": False},
                    {"message": {"role": "assistant", "content": "restores possession."}, "done": False},
                    {"message": {"role": "assistant", "content": ""}, "done": True},
                ),
            )

        config = make_config(ProviderName.LOCAL)
        chunks = await collect(_ollama(handler).complete(prompt, config))

        assert chunks == ["Spoliation ", "restores possession."]
        assert seen["url"] == "http://provider.test/api/chat"
        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "You are DocketDive."}
        assert seen["body"]["options"]["num_predict"] == config.max_tokens

    @pytest.mark.asyncio
    async def test_http_error_status(self, prompt):
        provider = _ollama(lambda request: httpx.Response(404, text="model not found"))

        with pytest.raises(ProviderError) as exc_info:
            await collect(provider.complete(prompt, make_config(ProviderName.LOCAL)))

        assert exc_info.value.details["status"] == 404

    @pytest.mark.asyncio
    async def test_error_line_in_stream(self, prompt):
        provider = _ollama(
            lambda request: httpx.Response(
                200,
                content=_ndjson(
                    {"message": {"content": "Part"}, "done": False},
                    {"error": "out of memory"},
                ),
            )
        )
        received = []

        with pytest.raises(ProviderError):
            async for chunk in provider.complete(prompt, make_config(ProviderName.LOCAL)):
                received.append(chunk)

        assert received == ["Part"]

    @pytest.mark.asyncio
    async def test_malformed_line(self, prompt):
        provider = _ollama(lambda request: httpx.Response(200, content=b"{not json\n"))

        with pytest.raises(ProviderError):
            await collect(provider.complete(prompt, make_config(ProviderName.LOCAL)))

    @pytest.mark.asyncio
    async def test_connection_refused(self, prompt):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderUnavailableError):
            await collect(_ollama(handler).complete(prompt, make_config(ProviderName.LOCAL)))

    @pytest.mark.asyncio
    async def test_health_check(self):
        provider = _ollama(lambda request: httpx.Response(200, json={"models": []}))

        assert await provider.health_check(make_config(ProviderName.LOCAL)) is True

    @pytest.mark.asyncio
    async def test_health_check_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await _ollama(handler).health_check(make_config(ProviderName.LOCAL)) is False


class TestGroqProvider:
    """Tests for GroqProvider."""

    @pytest.mark.asyncio
    async def test_streams_delta_content(self, prompt):
        stream = FakeGroqStream(["Spoliation", None, " is a remedy."])
        client = _groq_client(stream)
        provider = GroqProvider(client=client)

        chunks = await collect(provider.complete(prompt, make_config()))

        assert chunks == ["Spoliation", " is a remedy."]
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][-1] == {"role": "user", "content": "What is spoliation?"}
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_api_key(self, prompt):
        with pytest.raises(ProviderUnavailableError):
            await collect(GroqProvider().complete(prompt, make_config()))

    @pytest.mark.asyncio
    async def test_connection_error(self, prompt):
        request = httpx.Request("POST", "https://api.groq.test/chat/completions")
        provider = GroqProvider(client=_groq_client(error=openai.APIConnectionError(request=request)))

        with pytest.raises(ProviderUnavailableError):
            await collect(provider.complete(prompt, make_config()))

    @pytest.mark.asyncio
    async def test_status_error(self, prompt):
        request = httpx.Request("POST", "https://api.groq.test/chat/completions")
        response = httpx.Response(429, request=request)
        error = openai.APIStatusError("rate limited", response=response, body=None)
        provider = GroqProvider(client=_groq_client(error=error))

        with pytest.raises(ProviderError) as exc_info:
            await collect(provider.complete(prompt, make_config()))

        assert exc_info.value.details["status"] == 429

    @pytest.mark.asyncio
    async def test_error_mid_stream_keeps_earlier_chunks(self, prompt):
        request = httpx.Request("POST", "https://api.groq.test/chat/completions")
        stream = FakeGroqStream(["Partial"], error=openai.APITimeoutError(request=request))
        provider = GroqProvider(client=_groq_client(stream))
        received = []

        with pytest.raises(ProviderTimeoutError):
            async for chunk in provider.complete(prompt, make_config()):
                received.append(chunk)

        assert received == ["Partial"]
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_health_check_reflects_api_key(self):
        provider = GroqProvider()
        configured = make_config().model_copy(update={"api_key": SecretStr("gsk_test")})

        assert await provider.health_check(make_config()) is False
        assert await provider.health_check(configured) is True


class TestRegistry:
    """Tests for provider selection."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("local", ProviderName.LOCAL),
            ("cloud", ProviderName.CLOUD),
            ("ollama", ProviderName.LOCAL),
            ("Groq", ProviderName.CLOUD),
            (" LOCAL ", ProviderName.LOCAL),
            (ProviderName.CLOUD, ProviderName.CLOUD),
        ],
    )
    def test_parse_provider_name(self, value, expected):
        assert parse_provider_name(value) == expected

    def test_unknown_provider(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_provider_name("openai")

        assert "groq" in exc_info.value.details["allowed"]

    def test_resolve_default(self, provider_registry, fake_provider):
        provider, config = provider_registry.resolve()

        assert provider is fake_provider
        assert config.provider == ProviderName.CLOUD

    def test_resolve_alias(self, provider_registry, local_provider):
        provider, _ = provider_registry.resolve("ollama")

        assert provider is local_provider

    def test_resolve_unregistered(self):
        registry = ProviderRegistry(
            {ProviderName.CLOUD: (FakeProvider(), make_config())}, default=ProviderName.CLOUD
        )

        with pytest.raises(ValidationError):
            registry.resolve("local")

    def test_default_must_be_registered(self):
        with pytest.raises(ValueError):
            ProviderRegistry({}, default=ProviderName.CLOUD)

    def test_build_provider_configs(self):
        settings = Settings(_env_file=None, groq_api_key="gsk_test", max_tokens=512)

        configs = build_provider_configs(settings)

        assert configs[ProviderName.LOCAL].base_url == settings.ollama_base_url
        assert configs[ProviderName.LOCAL].api_key is None
        assert configs[ProviderName.CLOUD].model == settings.groq_model
        assert configs[ProviderName.CLOUD].api_key.get_secret_value() == "gsk_test"
        assert configs[ProviderName.CLOUD].max_tokens == 512

    @pytest.mark.asyncio
    async def test_create_provider_registry(self):
        registry = create_provider_registry(Settings(_env_file=None, default_provider="local"))

        provider, config = registry.resolve()

        assert isinstance(provider, OllamaProvider)
        assert config.provider == ProviderName.LOCAL
        assert set(registry.names) == {ProviderName.LOCAL, ProviderName.CLOUD}
        await registry.close()
