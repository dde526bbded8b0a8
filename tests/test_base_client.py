import asyncio

import aiohttp
import pytest

from combineti.api_clients.base_client import (
    APIDataError,
    AuthenticationError,
    BaseAPIClient,
    ClientError,
    RateLimitError,
    ServerError,
)
from conftest import FakeResponse, FakeSession, json_response


def make_client(responses, max_retries=3):
    client = BaseAPIClient(
        platform_name="test",
        api_key="secret",
        base_url="https://api.example.test/",
        max_retries=max_retries,
    )
    client.session = FakeSession(responses)
    return client


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        BaseAPIClient(platform_name="test", max_retries=0)


def test_backoff_delays_double():
    client = BaseAPIClient(platform_name="test")
    assert [client._backoff_delay(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]


def test_auth_params_require_key():
    client = BaseAPIClient(platform_name="test")
    with pytest.raises(ValueError):
        client._auth_params()

    client.api_key = "abc"
    assert client._auth_params({"day": "x"}) == {"day": "x", "key": "abc"}


@pytest.mark.asyncio
async def test_success_returns_parsed_json(sleeps):
    client = make_client([json_response([{"GameId": 1}])])

    result = await client.fetch_with_retry("https://api.example.test/x", params={"key": "secret"})

    assert result == [{"GameId": 1}]
    assert len(client.session.calls) == 1
    assert client.session.calls[0]["params"] == {"key": "secret"}
    assert sleeps == []


@pytest.mark.asyncio
async def test_rate_limit_stops_after_max_retries(sleeps):
    client = make_client([FakeResponse(status=429)], max_retries=3)

    with pytest.raises(RateLimitError) as exc_info:
        await client.fetch_with_retry("https://api.example.test/x")

    assert len(client.session.calls) == 3
    assert sleeps == [1.0, 2.0]
    assert exc_info.value.attempts == 3
    assert "Failed after 3 attempts due to API rate limiting" in str(exc_info.value)


@pytest.mark.asyncio
async def test_rate_limit_then_success(sleeps):
    client = make_client([FakeResponse(status=429), FakeResponse(status=429), json_response({"ok": True})])

    result = await client.fetch_with_retry("https://api.example.test/x")

    assert result == {"ok": True}
    assert len(client.session.calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_after_header_is_kept(sleeps):
    client = make_client([FakeResponse(status=429, headers={"Retry-After": "7"})], max_retries=1)

    with pytest.raises(RateLimitError) as exc_info:
        await client.fetch_with_retry("https://api.example.test/x")

    assert exc_info.value.retry_after == 7
    assert sleeps == []


@pytest.mark.asyncio
async def test_transient_network_errors_are_retried(sleeps):
    client = make_client([
        aiohttp.ClientConnectionError("reset"),
        asyncio.TimeoutError(),
        json_response([]),
    ])

    assert await client.fetch_with_retry("https://api.example.test/x") == []
    assert len(client.session.calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_network_error_reraised_when_bound_exhausted(sleeps):
    client = make_client([aiohttp.ClientConnectionError("down")], max_retries=2)

    with pytest.raises(aiohttp.ClientConnectionError):
        await client.fetch_with_retry("https://api.example.test/x")

    assert len(client.session.calls) == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_not_found_is_not_retried(sleeps):
    body = "No such competition " + "x" * 500
    client = make_client([FakeResponse(status=404, body=body)])

    with pytest.raises(ClientError) as exc_info:
        await client.fetch_with_retry("https://api.example.test/x")

    assert len(client.session.calls) == 1
    assert sleeps == []
    assert exc_info.value.status_code == 404
    message = str(exc_info.value)
    assert "No such competition" in message
    assert "x" * 201 not in message


@pytest.mark.asyncio
async def test_server_error_is_not_retried(sleeps):
    client = make_client([FakeResponse(status=503, body="maintenance")])

    with pytest.raises(ServerError) as exc_info:
        await client.fetch_with_retry("https://api.example.test/x")

    assert len(client.session.calls) == 1
    assert "maintenance" in str(exc_info.value)


@pytest.mark.asyncio
async def test_unauthorized_raises_authentication_error(sleeps):
    client = make_client([FakeResponse(status=401)])

    with pytest.raises(AuthenticationError):
        await client.fetch_with_retry("https://api.example.test/x")
    assert len(client.session.calls) == 1


@pytest.mark.asyncio
async def test_non_json_body_raises_data_error(sleeps):
    client = make_client([FakeResponse(status=200, body="<html>oops</html>")])

    with pytest.raises(APIDataError):
        await client.fetch_with_retry("https://api.example.test/x")
    assert len(client.session.calls) == 1


@pytest.mark.asyncio
async def test_post_sends_json_payload(sleeps):
    client = make_client([json_response({"ok": 1})])

    await client.post_with_retry("https://api.example.test/gen", {"a": 1}, params={"key": "secret"})

    call = client.session.calls[0]
    assert call["method"] == "POST"
    assert call["json"] == {"a": 1}
    assert call["headers"]["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_request_without_session_fails():
    client = BaseAPIClient(platform_name="test")
    with pytest.raises(RuntimeError):
        await client.fetch_with_retry("https://api.example.test/x")


@pytest.mark.asyncio
async def test_context_manager_opens_and_closes_session():
    client = BaseAPIClient(platform_name="test")
    async with client:
        assert client.session is not None
    assert client.session is None


def test_usage_stats_accumulate():
    client = BaseAPIClient(platform_name="gemini")
    client.record_usage("Match predictions", input_tokens=100, output_tokens=40)
    client.record_usage("Match predictions", input_tokens=50, output_tokens=10)

    stats = client.get_usage_stats()
    assert stats == {'total_requests': 2, 'total_input_tokens': 150, 'total_output_tokens': 50}
