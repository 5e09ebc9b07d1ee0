import re

import pytest

from betsense.prompts import (
    JSON_ONLY_INSTRUCTION,
    RESPONSIBLE_GAMBLING_NOTICE,
    build_user_payload,
    compose,
    fmt_pct,
)
from betsense.schemas import AnalysisRequest, MatchOdds, ValidationRules
from betsense.sports import REGISTRY, resolve

RULES = ValidationRules(probability_sum_tolerance=2)


def _request(**kw):
    base = {"homeTeam": "Arsenal", "awayTeam": "Chelsea"}
    base.update(kw)
    return AnalysisRequest(**base)


def test_compose_is_deterministic():
    profile = resolve("soccer_epl")
    a = compose(profile, _request(league="Premier League"), RULES)
    b = compose(profile, _request(league="Premier League"), RULES)
    assert a.text == b.text


def test_sections_in_fixed_order():
    doc = compose(resolve("soccer"), _request(), RULES)
    text = doc.text
    positions = [text.index(s) for s in doc.sections]
    assert positions == sorted(positions)
    assert text.startswith("You are BetSense AI")
    assert text.endswith(JSON_ONLY_INSTRUCTION)


def test_identity_shared_across_sports():
    soccer = compose(resolve("soccer"), rules=RULES)
    tennis = compose(resolve("tennis_atp_us_open"), rules=RULES)
    assert soccer.identity == tennis.identity
    assert RESPONSIBLE_GAMBLING_NOTICE in soccer.identity
    assert soccer.sport_context != tennis.sport_context


def test_sport_terminology_used():
    doc = compose(resolve("mma"), rules=RULES)
    assert "Analyze this bout between two fighters." in doc.sport_context
    assert "Scoring unit: rounds" in doc.sport_context
    assert "- Outcome labels: home, draw, away" in doc.sport_context
    assert "- Outcome labels: home, away" in compose(resolve("nba"), rules=RULES).sport_context


def test_key_factors_listed_verbatim_in_order():
    """Every factor appears as a numbered line, in table order."""
    for profile in REGISTRY.all_profiles():
        context = compose(profile, rules=RULES).sport_context
        for i, factor in enumerate(profile.key_factors, start=1):
            assert f"\n{i}. {factor}" in context


def test_request_details_included_when_present():
    doc = compose(resolve("soccer"), _request(league="Serie A", matchDate="2026-11-02"), RULES)
    assert "- League: Serie A" in doc.sport_context
    assert "- Date: 2026-11-02" in doc.sport_context
    bare = compose(resolve("soccer"), _request(), RULES)
    assert "- League:" not in bare.sport_context


def test_rule_constants_match_profile_values():
    """Numbers quoted in the prompt are exactly the numbers the validator enforces."""
    for profile in REGISTRY.all_profiles():
        rules_text = compose(profile, rules=RULES).validation_rules
        bounds, upset, value = profile.probability_bounds, profile.upset_bounds, profile.value_thresholds

        assert f"(±{fmt_pct(RULES.probability_sum_tolerance)}% tolerance)" in rules_text
        assert f"Favorite probability range: {fmt_pct(bounds.favorite.min)}%-{fmt_pct(bounds.favorite.max)}%" in rules_text
        assert f"Underdog probability range: {fmt_pct(bounds.underdog.min)}%-{fmt_pct(bounds.underdog.max)}%" in rules_text
        if profile.terminology.has_draw:
            assert f"Draw probability range: {fmt_pct(bounds.draw.min)}%-{fmt_pct(bounds.draw.max)}%" in rules_text
        else:
            assert "Draw probability range" not in rules_text
        assert f"above {fmt_pct(upset.heavy_favorite_threshold)}%" in rules_text
        assert f"Upset probability for heavy favorites: max {fmt_pct(upset.max_for_heavy_favorite)}%." in rules_text
        assert f"within {fmt_pct(upset.close_match_band)} points" in rules_text
        assert f"Close matches minimum upset probability: {fmt_pct(upset.min_for_close_match)}%." in rules_text
        assert f"- LOW: {fmt_pct(value.low)}+ points" in rules_text
        assert f"- MEDIUM: {fmt_pct(value.medium)}+ points" in rules_text
        assert f"- HIGH: {fmt_pct(value.high)}+ points" in rules_text


def test_custom_tolerance_is_quoted():
    doc = compose(resolve("soccer"), rules=ValidationRules(probability_sum_tolerance=3.5))
    match = re.search(r"±([\d.]+)% tolerance", doc.validation_rules)
    assert float(match.group(1)) == 3.5


def test_fmt_pct():
    assert fmt_pct(2.0) == "2"
    assert fmt_pct(12) == "12"
    assert fmt_pct(3.5) == "3.5"


def test_json_instruction_lists_sport_outcomes():
    soccer = compose(resolve("soccer"), rules=RULES).json_instruction
    nba = compose(resolve("nba"), rules=RULES).json_instruction
    assert '"home": <number>, "draw": <number>, "away": <number>' in soccer
    assert '"home": <number>, "away": <number>}' in nba
    assert "Respond with JSON only" in nba


def test_user_payload():
    profile = resolve("soccer")
    request = _request(league="EPL", odds=MatchOdds(home=2.0, draw=3.5, away=4.0),
                       context={"injuries": ["Saka"]})
    market = {"home": 48.28, "draw": 27.59, "away": 24.14}
    payload = build_user_payload(profile, request, market)
    assert payload["home"] == "Arsenal"
    assert payload["away"] == "Chelsea"
    assert payload["outcomes"] == ["home", "draw", "away"]
    assert payload["market_implied"] == market
    assert payload["bookmaker_margin"] == pytest.approx(3.57)
    assert payload["odds"] == {"home": 2.0, "draw": 3.5, "away": 4.0, "format": "decimal"}
    assert payload["context"] == {"injuries": ["Saka"]}


def test_user_payload_omits_missing_facts():
    payload = build_user_payload(resolve("nba"), _request(), None)
    assert "market_implied" not in payload
    assert "bookmaker_margin" not in payload
    assert "odds" not in payload
    assert payload["outcomes"] == ["home", "away"]
