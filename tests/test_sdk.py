"""
Tests for the Python SDK.

The server is replaced by an httpx.MockTransport that records requests.
"""

import asyncio
import json
import re

import httpx
import pytest

from sap_server.core.records import SourceTag
from sap_server.sdk import DocumentEvent, SAPClient, SAPClientError, SDKConfig
from sap_server.sdk.config import generate_user_id

STATS = {"totalPrompts": 3, "totalEnergy": 0.3, "totalCO2": 0.15, "lastUpdated": "2026-01-01T00:00:00Z"}


class FakeServer:
    """Answers SAP endpoints and records every request."""

    def __init__(self, fail=False):
        self.requests = []
        self.fail = fail

    def __call__(self, request):
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"error": "Failed to track prompt"})
        path = request.url.path
        if path == "/api/stats":
            return httpx.Response(200, json=STATS)
        if path == "/api/track":
            return httpx.Response(200, json={"success": True, "stats": {**STATS, "totalPrompts": 4}})
        if path.startswith("/api/user/"):
            return httpx.Response(200, json={"hasStamp": True, "hasMembership": False, "credits": 2.5, "payments": []})
        if path == "/api/generate":
            return httpx.Response(200, json={"response": "Hello!", "usage": None})
        if path == "/api/create-checkout-session":
            return httpx.Response(200, json={"sessionId": "cs_test_1"})
        return httpx.Response(404, json={"error": "Not Found"})

    def bodies(self, path):
        return [json.loads(r.content) for r in self.requests if r.url.path == path]


def make_client(server, **options):
    options.setdefault("user_id", "user_test")
    return SAPClient(SDKConfig(**options), transport=httpx.MockTransport(server))


class TestConfig:

    def test_defaults(self):
        config = SDKConfig()
        assert config.server_url == "http://localhost:3001"
        assert config.auto_track is True
        assert config.poll_interval == 5.0

    def test_generated_user_id(self):
        assert re.fullmatch(r"user_[a-z0-9]{9}_\d+", generate_user_id())

    @pytest.mark.parametrize("options", [
        {"server_url": "localhost:3001"},
        {"server_url": "ftp://example.com"},
        {"user_id": " "},
        {"poll_interval": 0},
        {"timeout": -1},
        {"input_debounce": -0.5},
    ])
    def test_invalid_options(self, options):
        with pytest.raises(ValueError):
            SDKConfig(**options)


class TestTrackPrompt:

    def test_sends_truncated_prompt_and_estimated_tokens(self):
        server = FakeServer()

        async def scenario():
            async with make_client(server) as sap:
                await sap.track_prompt("x" * 1500, model="gpt-4")

        asyncio.run(scenario())
        [body] = server.bodies("/api/track")
        assert len(body["prompt"]) == 1000
        assert body["tokens"] == 375
        assert body["model"] == "gpt-4"
        assert body["userId"] == "user_test"
        assert "source" not in body

    def test_updates_stats_and_fires_callback(self):
        server = FakeServer()
        tracked = []

        async def scenario():
            sap = make_client(server)
            sap.on_prompt_tracked(lambda data, result: tracked.append((data, result)))
            result = await sap.track_prompt("hello", tokens=10, source=SourceTag.FORM_SUBMISSION)
            await sap.close()
            return sap, result

        sap, result = asyncio.run(scenario())
        assert result["success"] is True
        assert sap.get_stats()["totalPrompts"] == 4
        [(data, _)] = tracked
        assert data["tokens"] == 10
        assert data["source"] == "form_submission"

    def test_failure_fires_on_error(self):
        errors = []

        async def scenario():
            sap = make_client(FakeServer(fail=True))
            sap.on_error(errors.append)
            result = await sap.track_prompt("hello")
            await sap.close()
            return result

        assert asyncio.run(scenario()) is None
        [error] = errors
        assert isinstance(error, SAPClientError)

    def test_bearer_token(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server, api_key="sap_key")
            await sap.track_prompt("hello")
            await sap.close()

        asyncio.run(scenario())
        assert server.requests[0].headers["Authorization"] == "Bearer sap_key"

    def test_no_bearer_without_key(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server)
            await sap.load_stats()
            await sap.close()

        asyncio.run(scenario())
        assert "Authorization" not in server.requests[0].headers


class TestStats:

    def test_load_stats_fires_callback(self):
        updates = []

        async def scenario():
            sap = make_client(FakeServer())
            sap.on_stats_update(updates.append)
            await sap.load_stats()
            await sap.close()

        asyncio.run(scenario())
        assert updates == [STATS]

    def test_get_stats_returns_copy(self):
        sap = make_client(FakeServer())
        sap.get_stats()["totalPrompts"] = 99
        assert sap.get_stats()["totalPrompts"] == 0

    def test_reset_stats_is_local(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server)
            await sap.load_stats()
            sent = len(server.requests)
            sap.reset_stats()
            await sap.close()
            return sap, sent

        sap, sent = asyncio.run(scenario())
        assert len(server.requests) == sent
        assert sap.get_stats()["totalPrompts"] == 0

    def test_polling(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server, poll_interval=0.01)
            sap.start_polling()
            await asyncio.sleep(0.1)
            sap.stop_polling()
            await sap.close()

        asyncio.run(scenario())
        assert len([r for r in server.requests if r.url.path == "/api/stats"]) >= 2

    def test_polling_survives_failing_callback(self):
        server = FakeServer()
        updates = []

        def on_update(stats):
            updates.append(stats)
            if len(updates) == 1:
                raise RuntimeError("widget not mounted")

        async def scenario():
            sap = make_client(server, poll_interval=0.01)
            sap.on_stats_update(on_update)
            sap.start_polling()
            await asyncio.sleep(0.2)
            task = sap._poll_task
            still_running = not task.done()
            sap.stop_polling()
            await sap.close()
            return still_running

        assert asyncio.run(scenario()) is True
        assert len(updates) >= 2

    def test_failing_tracked_callback_still_returns_result(self):
        server = FakeServer()

        def on_tracked(data, result):
            raise RuntimeError("boom")

        async def scenario():
            sap = make_client(server)
            sap.on_prompt_tracked(on_tracked)
            result = await sap.track_prompt("hello", tokens=1)
            await sap.close()
            return result

        assert asyncio.run(scenario())["success"] is True


class TestServerCalls:

    def test_user_status(self):
        server = FakeServer()

        async def scenario():
            async with make_client(server) as sap:
                return await sap.get_user_status()

        status = asyncio.run(scenario())
        assert status["credits"] == 2.5
        assert any(r.url.path == "/api/user/user_test" for r in server.requests)

    def test_generate_ai(self):
        server = FakeServer()

        async def scenario():
            async with make_client(server) as sap:
                return await sap.generate_ai("Say hello")

        assert asyncio.run(scenario())["response"] == "Hello!"
        [body] = server.bodies("/api/generate")
        assert body == {"prompt": "Say hello", "model": "openai/gpt-3.5-turbo", "userId": "user_test"}

    def test_checkout_session(self):
        server = FakeServer()

        async def scenario():
            async with make_client(server) as sap:
                return await sap.create_checkout_session("credits", "price_123")

        assert asyncio.run(scenario()) == {"sessionId": "cs_test_1"}
        [body] = server.bodies("/api/create-checkout-session")
        assert body == {"priceId": "price_123", "userId": "user_test", "type": "credits"}

    def test_errors_raise(self):
        async def scenario():
            sap = make_client(FakeServer(fail=True))
            try:
                await sap.get_user_status()
            finally:
                await sap.close()

        with pytest.raises(SAPClientError):
            asyncio.run(scenario())


class TestAutoTrack:

    def test_submit_is_tracked(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server)
            await sap.handle_event(DocumentEvent("submit", text="Write a haiku about autumn"))
            await sap.close()

        asyncio.run(scenario())
        [body] = server.bodies("/api/track")
        assert body["source"] == "form_submission"
        assert body["model"] == "unknown"

    def test_disabled(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server)
            sap.set_auto_track(False)
            result = await sap.handle_event(DocumentEvent("submit", text="Write a haiku about autumn"))
            await sap.close()
            return result

        assert asyncio.run(scenario()) is None
        assert server.requests == []

    def test_input_is_debounced_per_target(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server, input_debounce=0.05)
            for length in (60, 70, 80):
                await sap.handle_event(DocumentEvent("input", tag="TEXTAREA", text="z" * length, target_id="prompt"))
            await sap.handle_event(DocumentEvent("input", tag="TEXTAREA", text="w" * 55, target_id="other"))
            await asyncio.sleep(0.2)
            await sap.close()

        asyncio.run(scenario())
        bodies = server.bodies("/api/track")
        assert sorted(len(b["prompt"]) for b in bodies) == [55, 80]
        assert all(b["source"] == "input_change" for b in bodies)


class TestConfigUpdates:

    def test_update_config_changes_server(self):
        server = FakeServer()

        async def scenario():
            sap = make_client(server)
            sap.update_config(server_url="https://sap.example.com/")
            await sap.load_stats()
            await sap.close()
            return sap

        sap = asyncio.run(scenario())
        assert server.requests[0].url.host == "sap.example.com"
        assert sap.get_config().server_url == "https://sap.example.com/"

    def test_update_config_validates(self):
        sap = make_client(FakeServer())
        with pytest.raises(ValueError):
            sap.update_config(poll_interval=0)

    def test_version(self):
        assert make_client(FakeServer()).get_version() == "1.0.0"
