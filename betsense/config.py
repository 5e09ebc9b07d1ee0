from dataclasses import dataclass, field
import os

# Manual .env loading
env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
if os.path.exists(env_path):
    with open(env_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if "=" in line and not line.startswith("#"):
                k, v = line.split("=", 1)
                os.environ.setdefault(k.strip(), v.strip())


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _api_key() -> str:
    return os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY", "")


@dataclass
class Settings:
    provider: str = field(default_factory=lambda: _env("LLM_PROVIDER", "openai"))  # openai|anthropic|google
    model: str = field(default_factory=lambda: _env("LLM_MODEL", "gpt-4o"))
    temperature: float = field(default_factory=lambda: float(_env("LLM_TEMPERATURE", "0.2")))
    max_tokens: int = field(default_factory=lambda: int(_env("LLM_MAX_TOKENS", "1500")))
    timeout_seconds: float = field(default_factory=lambda: float(_env("LLM_TIMEOUT_SECONDS", "30")))
    dry_run: bool = field(default_factory=lambda: _env("DRY_RUN", "false").lower() == "true")
    api_key: str = field(default_factory=_api_key)

    # Validation
    probability_sum_tolerance: float = field(
        default_factory=lambda: float(_env("PROBABILITY_SUM_TOLERANCE", "2"))
    )

    # Server
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())
    host: str = field(default_factory=lambda: _env("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(_env("PORT", "8000")))

    @property
    def provider_configured(self) -> bool:
        return self.dry_run or bool(self.api_key)


SETTINGS = Settings()
