import json
import logging

import pytest
from fastapi.testclient import TestClient

from betsense.config import Settings
from betsense.errors import ProviderError, ProviderTimeout
from betsense.llm import ChatClient, ModelGateway
from betsense.pipeline import Analyzer
from betsense.server import create_app

VALID_REPLY = {
    "outcomeProbabilities": {"home": 55, "draw": 25, "away": 20},
    "riskLevel": "MEDIUM",
    "valueFlag": "HIGH",
    "bestValueSide": "HOME",
    "narrative": "Home side in form.",
    "dataQuality": "HIGH",
}

BODY = {
    "sport": "soccer_epl",
    "homeTeam": "Arsenal",
    "awayTeam": "Chelsea",
    "odds": {"home": 1.9, "draw": 3.6, "away": 4.2},
}


class StubClient(ChatClient):
    def __init__(self, settings, reply=None, error=None):
        super().__init__(settings)
        self.reply = reply
        self.error = error

    def complete(self, system_prompt, user_content, timeout):
        if self.error is not None:
            raise self.error
        return json.dumps(self.reply)


def _client(reply=VALID_REPLY, error=None, api_key="sk-test", inject=True):
    settings = Settings(api_key=api_key, dry_run=False, probability_sum_tolerance=2.0)
    stub = StubClient(settings, reply=reply, error=error) if inject else None
    analyzer = Analyzer(gateway=ModelGateway(settings, client=stub), settings=settings)
    return TestClient(create_app(analyzer))


def test_analyze_ok():
    res = _client().post("/api/analyze", json=BODY)
    assert res.status_code == 200
    data = res.json()
    assert data["outcomeProbabilities"] == {"home": 55.0, "draw": 25.0, "away": 20.0}
    assert data["valueFlag"] == "LOW"
    assert data["bestValueSide"] == "HOME"
    assert set(data) == {"outcomeProbabilities", "riskLevel", "valueFlag", "bestValueSide",
                         "narrative", "dataQuality"}


def test_missing_team_is_400():
    res = _client().post("/api/analyze", json={"homeTeam": "Arsenal"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "InvalidRequest"
    assert res.json()["error"]["field"] == "awayTeam"


def test_same_team_is_400():
    res = _client().post("/api/analyze", json={"homeTeam": "Arsenal", "awayTeam": " arsenal "})
    assert res.status_code == 400


def test_bad_odds_is_400():
    body = dict(BODY, odds={"home": 0.5, "away": 2.0})
    assert _client().post("/api/analyze", json=body).status_code == 400


def test_malformed_json_is_400():
    res = _client().post("/api/analyze", content="{not json",
                         headers={"Content-Type": "application/json"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "InvalidRequest"


def test_validation_rejection_is_422():
    reply = dict(VALID_REPLY, outcomeProbabilities={"home": 50, "draw": 22, "away": 20})
    res = _client(reply=reply).post("/api/analyze", json=BODY)
    assert res.status_code == 422
    error = res.json()["error"]
    assert error["code"] == "ProbabilitySumViolation"
    assert error["field"] == "outcomeProbabilities"


@pytest.mark.parametrize("error, code", [
    (ProviderError("Provider returned HTTP 500", status=500), "ProviderError"),
    (ProviderTimeout("Provider did not answer within 30s"), "ProviderTimeout"),
])
def test_provider_failures_are_502(error, code, caplog):
    with caplog.at_level(logging.ERROR, logger="betsense.server"):
        res = _client(error=error).post("/api/analyze", json=BODY)
    assert res.status_code == 502
    assert res.json()["error"]["code"] == code
    record = next(r for r in caplog.records if r.name == "betsense.server")
    assert record.args == ("Arsenal", "Chelsea", error)
    assert record.getMessage().startswith("Provider failure for Arsenal vs Chelsea")


def test_non_finite_probability_is_422():
    reply = dict(VALID_REPLY, outcomeProbabilities={"home": 55, "draw": float("nan"), "away": 20})
    res = _client(reply=reply).post("/api/analyze", json=BODY)
    assert res.status_code == 422
    assert res.json()["error"]["field"] == "outcomeProbabilities.draw"


def test_unconfigured_provider_is_503():
    client = _client(api_key="", inject=False)
    res = client.post("/api/analyze", json=BODY)
    assert res.status_code == 503
    assert res.json()["error"]["code"] == "ProviderUnavailable"
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["provider_configured"] is False


def test_sports_listing():
    data = _client().get("/api/sports").json()
    assert data["default"] == "soccer"
    names = [c["name"] for c in data["categories"]]
    assert names[0] == "Soccer"
    tennis = next(c for c in data["categories"] if c["name"] == "Tennis")
    assert all(s["hasDraw"] is False for s in tennis["sports"])
    assert {"id": "soccer_epl", "name": "Premier League", "hasDraw": True, "matchTerm": "match"} \
        in data["categories"][0]["sports"]
    assert [c["id"] for c in data["categories"]][:2] == ["soccer", "basketball"]
    assert any(c["id"] == "ice-hockey" for c in data["categories"])
