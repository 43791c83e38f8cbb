"""
SDK configuration.

Every recognized client option with its default, validated at construction.
"""

import random
import string
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

DEFAULT_SERVER_URL = "http://localhost:3001"


def generate_user_id() -> str:
    """Generate an anonymous user id such as ``user_k3j9x0q2a_1718000000000``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"user_{suffix}_{int(time.time() * 1000)}"


@dataclass(frozen=True)
class SDKConfig:
    """Options for SAPClient.

    Attributes:
        server_url: Base URL of the SAP server
        api_key: Sent as a bearer token when set
        user_id: Id every tracked prompt is attributed to
        auto_track: Whether handle_event() tracks detected prompts
        debug: Log every request and callback at INFO level
        poll_interval: Seconds between background stats refreshes
        timeout: HTTP timeout in seconds
        input_debounce: Seconds of typing silence before an input_change is tracked
    """
    server_url: str = DEFAULT_SERVER_URL
    api_key: Optional[str] = None
    user_id: str = field(default_factory=generate_user_id)
    auto_track: bool = True
    debug: bool = False
    poll_interval: float = 5.0
    timeout: float = 10.0
    input_debounce: float = 2.0

    def __post_init__(self):
        """Validate option values."""
        parsed = urlparse(self.server_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"server_url must be an http(s) URL, got {self.server_url!r}")
        if not self.user_id or not self.user_id.strip():
            raise ValueError("user_id cannot be empty")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.input_debounce < 0:
            raise ValueError("input_debounce must be >= 0")

    @property
    def base_url(self) -> str:
        return self.server_url.rstrip("/")
