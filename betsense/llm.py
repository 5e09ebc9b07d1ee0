from typing import Any, Dict, Optional
import hashlib
import json
import logging
import socket
import threading
import urllib.error
import urllib.request

from betsense.config import SETTINGS, Settings
from betsense.errors import ConfigurationError, ProviderError, ProviderTimeout, ProviderUnavailable
from betsense.schemas import PromptDocument

logger = logging.getLogger(__name__)


def post_json(url: str, headers: Dict[str, str], data: Dict[str, Any], timeout: float) -> Dict[str, Any]:
    """POST a JSON body and decode the JSON reply, mapping transport failures."""
    req = urllib.request.Request(url, data=json.dumps(data, default=str).encode('utf-8'),
                                 headers=headers, method='POST')
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = response.read().decode('utf-8')
    except urllib.error.HTTPError as e:
        detail = ""
        try:
            detail = e.read().decode('utf-8', errors='replace')
        except OSError:
            pass
        raise ProviderError(f"Provider returned HTTP {e.code}", status=e.code, body=detail) from e
    except (socket.timeout, TimeoutError) as e:
        raise ProviderTimeout(f"Provider did not answer within {timeout}s") from e
    except urllib.error.URLError as e:
        if isinstance(e.reason, (socket.timeout, TimeoutError)):
            raise ProviderTimeout(f"Provider did not answer within {timeout}s") from e
        raise ProviderError(f"Provider unreachable: {e.reason}") from e

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ProviderError("Provider envelope is not JSON", body=body) from e


class ChatClient:
    """One provider's chat-completion call. Returns the completion text untouched."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def complete(self, system_prompt: str, user_content: str, timeout: float) -> str:
        raise NotImplementedError

    def _extract(self, res: Dict[str, Any], *path) -> str:
        node: Any = res
        try:
            for key in path:
                node = node[key]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected {self.settings.provider} response shape",
                                body=json.dumps(res, default=str)) from e
        if not isinstance(node, str):
            raise ProviderError(f"{self.settings.provider} completion is not text")
        return node


class OpenAIChatClient(ChatClient):
    url = "https://api.openai.com/v1/chat/completions"

    def complete(self, system_prompt: str, user_content: str, timeout: float) -> str:
        s = self.settings
        headers = {"Authorization": f"Bearer {s.api_key}", "Content-Type": "application/json"}
        payload = {
            "model": s.model,
            "messages": [{"role": "system", "content": system_prompt}, {"role": "user", "content": user_content}],
            "temperature": s.temperature, "max_tokens": s.max_tokens, "response_format": {"type": "json_object"}
        }
        res = post_json(self.url, headers, payload, timeout)
        return self._extract(res, "choices", 0, "message", "content")


class AnthropicChatClient(ChatClient):
    url = "https://api.anthropic.com/v1/messages"

    def complete(self, system_prompt: str, user_content: str, timeout: float) -> str:
        s = self.settings
        headers = {"x-api-key": s.api_key, "anthropic-version": "2023-06-01", "Content-Type": "application/json"}
        payload = {
            "model": s.model, "system": system_prompt, "messages": [{"role": "user", "content": user_content}],
            "max_tokens": s.max_tokens, "temperature": s.temperature
        }
        res = post_json(self.url, headers, payload, timeout)
        return self._extract(res, "content", 0, "text")


class GoogleChatClient(ChatClient):

    def complete(self, system_prompt: str, user_content: str, timeout: float) -> str:
        s = self.settings
        url = f"https://generativelanguage.googleapis.com/v1beta/models/{s.model}:generateContent?key={s.api_key}"
        headers = {"Content-Type": "application/json"}
        payload = {
            "contents": [{"parts": [{"text": f"System: {system_prompt}\n\nUser: {user_content}"}]}],
            "generationConfig": {"temperature": s.temperature, "maxOutputTokens": s.max_tokens, "responseMimeType": "application/json"}
        }
        res = post_json(url, headers, payload, timeout)
        return self._extract(res, "candidates", 0, "content", "parts", 0, "text")


class DryRunChatClient(ChatClient):
    """Offline simulation: deterministic hash-seeded answer, no network."""

    def complete(self, system_prompt: str, user_content: str, timeout: float) -> str:
        facts = json.loads(user_content)
        outcomes = facts.get("outcomes", ["home", "draw", "away"])
        market = facts.get("market_implied")

        h_str = f"{facts.get('sport')}_{facts.get('home')}_{facts.get('away')}_salt"
        h_val = int(hashlib.md5(h_str.encode()).hexdigest(), 16)

        if market and all(o in market for o in outcomes):
            # Tilt the market by up to 4 points toward the home side
            tilt = (h_val % 9) - 4
            probs = {o: float(market.get(o, 0.0)) for o in outcomes}
            probs["home"] = probs["home"] + tilt
            probs["away"] = probs["away"] - tilt
        elif "draw" in outcomes:
            home = 35 + h_val % 21
            draw = 22 + (h_val // 21) % 9
            probs = {"home": home, "draw": draw, "away": 100 - home - draw}
        else:
            home = 40 + h_val % 31
            probs = {"home": home, "away": 100 - home}

        probs = {k: round(v, 1) for k, v in probs.items()}
        body = {
            "outcomeProbabilities": probs,
            "riskLevel": "MEDIUM",
            "valueFlag": "NONE",
            "bestValueSide": "NONE",
            "narrative": f"Simulated analysis for {facts.get('home')} vs {facts.get('away')}.",
            "dataQuality": "LOW",
        }
        return "```json\n" + json.dumps(body, indent=2) + "\n```"


CLIENTS = {
    "openai": OpenAIChatClient,
    "anthropic": AnthropicChatClient,
    "google": GoogleChatClient,
}


def build_client(settings: Settings) -> ChatClient:
    if settings.dry_run:
        return DryRunChatClient(settings)
    if not settings.api_key:
        raise ProviderUnavailable("LLM_API_KEY is not set.")
    client_cls = CLIENTS.get(settings.provider)
    if client_cls is None:
        raise ConfigurationError(f"Provider {settings.provider} not supported.")
    return client_cls(settings)


class ModelGateway:
    """Single round-trip to the language model.

    The provider client is built on first use, after the credential check,
    so an unconfigured process still starts. No retries: a failure is raised
    to the caller as ProviderUnavailable, ProviderError or ProviderTimeout.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[ChatClient] = None):
        self.settings = settings or SETTINGS
        self._client = client
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._client is not None or self.settings.provider_configured

    def client(self) -> ChatClient:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = build_client(self.settings)
        return self._client

    def query(self, prompt: PromptDocument, payload: Dict[str, Any],
              timeout: Optional[float] = None) -> str:
        client = self.client()
        timeout = timeout if timeout is not None else self.settings.timeout_seconds
        user_content = json.dumps(payload, default=str)

        logger.info("Querying %s model %s", self.settings.provider, self.settings.model)
        try:
            text = client.complete(prompt.text, user_content, timeout)
        except ProviderError as e:
            logger.error("Model call failed: %s", e)
            raise
        logger.debug("Model returned %d characters", len(text))
        return text
