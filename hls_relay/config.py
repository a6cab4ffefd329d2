import os
from dataclasses import dataclass

from hls_relay.headers import default_variants

DEFAULT_ALLOWED_HOST = "megacloud.blog"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _env_flag(name, default="false"):
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class RelayConfig:
    """
    Process-wide settings, read once at startup and passed into every component.
    """

    allowed_host: str = DEFAULT_ALLOWED_HOST
    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    chunk_size: int = 8192
    # Empty string makes resolution fail closed.
    resolver_fallback: str = "127.0.0.1"
    proxy_path: str = "/proxy"
    host: str = "0.0.0.0"
    port: int = 5001
    debug: bool = False

    @property
    def timeout(self):
        return (self.connect_timeout, self.read_timeout)

    @property
    def variants(self):
        return default_variants(self.allowed_host)

    @classmethod
    def from_env(cls):
        return cls(
            allowed_host=os.environ.get("RELAY_ALLOWED_HOST", DEFAULT_ALLOWED_HOST).strip(),
            user_agent=os.environ.get("RELAY_USER_AGENT", DEFAULT_USER_AGENT),
            connect_timeout=float(os.environ.get("RELAY_CONNECT_TIMEOUT", 10)),
            read_timeout=float(os.environ.get("RELAY_READ_TIMEOUT", 30)),
            chunk_size=int(os.environ.get("RELAY_CHUNK_SIZE", 8192)),
            resolver_fallback=os.environ.get("RELAY_RESOLVER_FALLBACK", "127.0.0.1").strip(),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 5001)),
            debug=_env_flag("RELAY_DEBUG"),
        )
