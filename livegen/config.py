import os

# ── Defaults (override through the environment) ──────────────────────────────

API_URL        = os.environ.get("LIVEGEN_API_URL",
                                "https://openrouter.ai/api/v1/chat/completions")
API_KEY        = os.environ.get("OPENROUTER_API_KEY", "")
PRIMARY_MODEL  = os.environ.get("CODEGEN_MODEL",  "deepseek/deepseek-chat")
FALLBACK_MODEL = os.environ.get("FALLBACK_MODEL", "anthropic/claude-3.5-sonnet")
APP_URL        = os.environ.get("LIVEGEN_APP_URL", "http://localhost:7824")
APP_TITLE      = "livegen"

TEMPERATURE      = 0.7
MAX_TOKENS       = 16000
CHAT_MAX_TOKENS  = 2000
REQUEST_TIMEOUT  = 60          # seconds, connect + first byte
MAX_ATTEMPTS     = 3
RETRYABLE_STATUS = frozenset({429, 502, 503, 504})
RETRY_DELAYS     = (1.0, 2.0, 4.0)
PROGRESS_EVERY   = 3.0         # seconds between "still generating" progress events

DEBOUNCE_MS      = 500
STRUCTURAL_DELAY = 1000
BULK_DELAY       = 600
SOFT_DELAY       = 200
BULK_THRESHOLD   = 3

DEV_PORT = 5173


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


class Settings:
    """Per-session configuration. Built once per session and handed to every
    component that needs it; nothing reads module state after construction."""

    def __init__(self, api_key: str = "", api_url: str = API_URL,
                 primary_model: str = PRIMARY_MODEL,
                 fallback_model: str = FALLBACK_MODEL,
                 fallback_enabled: bool = True,
                 templates_enabled: bool = True,
                 lock_base_files: bool = True,
                 temperature: float = TEMPERATURE,
                 max_tokens: int = MAX_TOKENS,
                 chat_max_tokens: int = CHAT_MAX_TOKENS,
                 request_timeout: float = REQUEST_TIMEOUT,
                 max_attempts: int = MAX_ATTEMPTS,
                 retry_delays=RETRY_DELAYS,
                 progress_every: float = PROGRESS_EVERY,
                 debounce_ms: int = DEBOUNCE_MS,
                 dev_port: int = DEV_PORT):
        self.api_key           = api_key
        self.api_url           = api_url
        self.primary_model     = primary_model
        self.fallback_model    = fallback_model
        self.fallback_enabled  = fallback_enabled
        self.templates_enabled = templates_enabled
        self.lock_base_files   = lock_base_files
        self.temperature       = temperature
        self.max_tokens        = max_tokens
        self.chat_max_tokens   = chat_max_tokens
        self.request_timeout   = request_timeout
        self.max_attempts      = max_attempts
        self.retry_delays      = tuple(retry_delays)
        self.progress_every    = progress_every
        self.debounce_ms       = debounce_ms
        self.dev_port          = dev_port

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        values = {
            "api_key":           API_KEY,
            "fallback_enabled":  _flag("LIVEGEN_FALLBACK", True),
            "templates_enabled": _flag("LIVEGEN_TEMPLATES", True),
        }
        values.update(overrides)
        return cls(**values)

    def model_chain(self) -> list:
        """Models to try in order. The fallback only joins when enabled."""
        chain = [self.primary_model]
        if (self.fallback_enabled and self.fallback_model
                and self.fallback_model != self.primary_model):
            chain.append(self.fallback_model)
        return chain

    def headers(self) -> dict:
        h = {
            "Content-Type": "application/json",
            "HTTP-Referer": APP_URL,
            "X-Title":      APP_TITLE,
        }
        if self.api_key:
            h["Authorization"] = f"Bearer {self.api_key}"
        return h

    def __repr__(self):
        return (f"Settings(primary={self.primary_model!r}, "
                f"fallback={self.fallback_model!r}, "
                f"fallback_enabled={self.fallback_enabled})")
