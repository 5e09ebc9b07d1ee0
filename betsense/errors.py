"""Exceptions raised at the model-provider boundary."""

from typing import Any, Dict, Optional


class BetSenseError(Exception):
    code = "InternalError"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class ConfigurationError(BetSenseError):
    code = "ConfigurationError"


class ProviderUnavailable(ConfigurationError):
    """No credential configured for the model provider."""
    code = "ProviderUnavailable"


class ProviderError(BetSenseError):
    """The provider could not be reached or answered with a failure."""
    code = "ProviderError"

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body[:500]

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        if self.status is not None:
            d["meta"] = {"status": self.status}
        return d


class ProviderTimeout(ProviderError):
    code = "ProviderTimeout"
