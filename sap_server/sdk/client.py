"""
Async client for the SAP server.

Tracks prompts, keeps a local copy of the global stats, polls for updates,
and wraps the user, generation and checkout endpoints.
"""

import asyncio
import logging
from dataclasses import asdict, replace
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import quote

import httpx

from sap_server.core.records import PROMPT_MAX_CHARS, PaymentType, SourceTag, utcnow
from sap_server.sdk.autotrack import DEFAULT_RULES, DocumentEvent, TrackingRule, match_rule
from sap_server.sdk.config import SDKConfig
from sap_server.utils.carbon import estimate_tokens

logger = logging.getLogger(__name__)

SDK_VERSION = "1.0.0"
DEFAULT_GENERATION_MODEL = "openai/gpt-3.5-turbo"


class SAPClientError(Exception):
    """A request to the SAP server failed."""


def empty_stats() -> Dict[str, Any]:
    return {"totalPrompts": 0, "totalEnergy": 0.0, "totalCO2": 0.0, "lastUpdated": None}


class SAPClient:
    """Client for one user of the SAP server.

    Use as an async context manager to load stats and poll in the background:

        async with SAPClient(SDKConfig(server_url="https://sap.example.com")) as sap:
            await sap.track_prompt("Summarize this article", model="gpt-4o")
            print(sap.get_stats())
    """

    def __init__(
        self,
        config: Optional[SDKConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rules: Iterable[TrackingRule] = DEFAULT_RULES,
    ):
        self.config = config or SDKConfig()
        self.stats: Dict[str, Any] = empty_stats()
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=transport,
        )
        self._rules = tuple(rules)
        self._callbacks: Dict[str, Optional[Callable]] = {
            "on_stats_update": None,
            "on_error": None,
            "on_prompt_tracked": None,
        }
        self._poll_task: Optional[asyncio.Task] = None
        self._pending_inputs: Dict[str, asyncio.Task] = {}
        self._log("SAP SDK initialized")

    async def __aenter__(self) -> "SAPClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ── Lifecycle ────────────────────────────────────────────────────────
    async def start(self) -> None:
        """Load the current stats and start background polling."""
        await self.load_stats()
        self.start_polling()

    async def close(self) -> None:
        self.stop_polling()
        for task in self._pending_inputs.values():
            task.cancel()
        self._pending_inputs.clear()
        await self._http.aclose()

    def start_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll())

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.config.poll_interval)
            await self.load_stats()

    # ── Requests ─────────────────────────────────────────────────────────
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, headers=self._headers(), **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise SAPClientError(f"HTTP {e.response.status_code}: {e.response.reason_phrase}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise SAPClientError(str(e)) from e

    async def track_prompt(
        self,
        prompt: str,
        model: str = "unknown",
        tokens: Optional[int] = None,
        energy: Optional[float] = None,
        co2: Optional[float] = None,
        source: Optional[SourceTag] = None,
    ) -> Optional[Dict[str, Any]]:
        """Report one prompt. Returns the server response, or None on failure.

        Failures are passed to the on_error callback instead of raised.
        """
        tracking_data = {
            "prompt": prompt[:PROMPT_MAX_CHARS],
            "model": model,
            "tokens": tokens or estimate_tokens(prompt),
            "energy": energy,
            "co2": co2,
            "userId": self.config.user_id,
            "timestamp": utcnow().isoformat(),
        }
        if source is not None:
            tracking_data["source"] = SourceTag(source).value

        self._log("Tracking prompt", tracking_data)
        try:
            result = await self._request("POST", "/api/track", json=tracking_data)
        except SAPClientError as e:
            self._log("Error tracking prompt", e)
            self._fire("on_error", e)
            return None

        self.stats = dict(result["stats"])
        self._fire("on_prompt_tracked", tracking_data, result)
        self._log("Prompt tracked successfully", result)
        return result

    async def load_stats(self) -> Optional[Dict[str, Any]]:
        """Refresh the local copy of the global stats."""
        try:
            stats = await self._request("GET", "/api/stats")
        except SAPClientError as e:
            self._log("Error loading stats", e)
            self._fire("on_error", e)
            return None

        self.stats = dict(stats)
        self._fire("on_stats_update", self.get_stats())
        self._log("Stats updated", stats)
        return self.get_stats()

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)

    async def get_user_status(self) -> Dict[str, Any]:
        try:
            return await self._request("GET", f"/api/user/{quote(self.config.user_id, safe='')}")
        except SAPClientError as e:
            self._log("Error loading user status", e)
            raise

    async def generate_ai(self, prompt: str, model: str = DEFAULT_GENERATION_MODEL) -> Dict[str, Any]:
        """Generate an AI response; the server tracks the prompt."""
        try:
            result = await self._request(
                "POST",
                "/api/generate",
                json={"prompt": prompt, "model": model, "userId": self.config.user_id},
            )
        except SAPClientError as e:
            self._log("Error generating AI response", e)
            raise
        self._log("AI response generated", result)
        return result

    async def create_checkout_session(self, payment_type: PaymentType, price_id: str) -> Dict[str, Any]:
        try:
            result = await self._request(
                "POST",
                "/api/create-checkout-session",
                json={
                    "priceId": price_id,
                    "userId": self.config.user_id,
                    "type": PaymentType(payment_type).value,
                },
            )
        except SAPClientError as e:
            self._log("Error creating checkout session", e)
            raise
        self._log("Checkout session created", result)
        return result

    # ── Auto tracking ────────────────────────────────────────────────────
    async def handle_event(self, event: DocumentEvent) -> Optional[Dict[str, Any]]:
        """Track the event if auto tracking is on and a rule matches it.

        Debounced rules schedule the tracking call and return None.
        """
        if not self.config.auto_track:
            return None
        rule = match_rule(event, self._rules)
        if rule is None:
            return None
        if rule.debounce and self.config.input_debounce > 0:
            self._schedule_input(event, rule.source)
            return None
        return await self.track_prompt(event.text, source=rule.source)

    def _schedule_input(self, event: DocumentEvent, source: SourceTag) -> None:
        key = event.target_id or "default"
        pending = self._pending_inputs.get(key)
        if pending is not None:
            pending.cancel()
        self._pending_inputs[key] = asyncio.create_task(self._track_later(key, event.text, source))

    async def _track_later(self, key: str, text: str, source: SourceTag) -> None:
        await asyncio.sleep(self.config.input_debounce)
        self._pending_inputs.pop(key, None)
        await self.track_prompt(text, source=source)

    # ── Callbacks ────────────────────────────────────────────────────────
    def on_stats_update(self, callback: Callable) -> None:
        self._callbacks["on_stats_update"] = callback

    def on_error(self, callback: Callable) -> None:
        self._callbacks["on_error"] = callback

    def on_prompt_tracked(self, callback: Callable) -> None:
        self._callbacks["on_prompt_tracked"] = callback

    def _fire(self, name: str, *args: Any) -> None:
        callback = self._callbacks.get(name)
        if callback is None:
            return
        # A failing callback must not stop polling or debounced tracking.
        try:
            callback(*args)
        except Exception:
            logger.exception(f"[SAP SDK] {name} callback failed")

    # ── Configuration ────────────────────────────────────────────────────
    def update_config(self, **changes: Any) -> SDKConfig:
        """Replace config options; the result is validated like a new SDKConfig."""
        self.config = replace(self.config, **changes)
        self._http.base_url = self.config.base_url
        self._http.timeout = httpx.Timeout(self.config.timeout)
        self._log("Configuration updated", asdict(self.config))
        return self.config

    def get_config(self) -> SDKConfig:
        return self.config

    def set_auto_track(self, enabled: bool) -> None:
        self.update_config(auto_track=enabled)
        self._log(f"Auto tracking {'enabled' if enabled else 'disabled'}")

    def reset_stats(self) -> None:
        """Clear the local stats. The server totals are not affected."""
        self.stats = empty_stats()

    def get_version(self) -> str:
        return SDK_VERSION

    def _log(self, message: str, data: Any = None) -> None:
        if self.config.debug:
            logger.info(f"[SAP SDK] {message}" + (f" {data}" if data is not None else ""))
