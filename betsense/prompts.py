from typing import Any, Dict, List, Optional

from betsense.odds import bookmaker_margin
from betsense.schemas import (
    AnalysisRequest,
    PromptDocument,
    ProbabilityRange,
    SportProfile,
    ValidationRules,
)

ANALYST_NAME = "BetSense AI"

PRIMARY_DIRECTIVES = [
    "You DO NOT provide betting tips.",
    "You DO NOT tell users what to bet.",
    "You DO NOT imply certainty or guarantees.",
    "You ALWAYS output one single JSON object following the schema below.",
    "You ALWAYS apply the numerical consistency rules below.",
    "Your purpose is ANALYSIS, not advice.",
]

ANALYSIS_TASKS = [
    "Analyze the match facts using statistical, tactical, and probabilistic reasoning.",
    "Estimate probabilities realistically.",
    "Compare market-implied vs estimated probabilities when odds are supplied.",
    "Evaluate value, risk, and upset potential.",
    "Provide neutral commentary.",
    "Detect and correct inconsistencies before output.",
]

ACCURACY_ENHANCERS = [
    "Use structured reasoning.",
    "Never exceed empirical bounds typical for each sport.",
    "Use only the data provided. Never invent missing data.",
    "If data is missing, set dataQuality to LOW and still produce a full analysis.",
]

RESPONSIBLE_GAMBLING_NOTICE = (
    "This analysis is for educational and informational purposes only. "
    "It does not constitute betting advice and no outcome is guaranteed."
)

JSON_ONLY_INSTRUCTION = (
    "Respond with JSON only. Return a single JSON object, "
    "no prose, no markdown, no code fences."
)


def fmt_pct(value: float) -> str:
    """Render a percentage constant the same way everywhere it is quoted."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _fmt_range(r: ProbabilityRange) -> str:
    return f"{fmt_pct(r.min)}%-{fmt_pct(r.max)}%"


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {i}" for i in items)


def build_identity() -> str:
    return f"""You are {ANALYST_NAME}, a sports probability analysis engine.

Primary directives (NEVER violate these):
{_bullets(PRIMARY_DIRECTIVES)}

Your job:
{_bullets(ANALYSIS_TASKS)}

Accuracy enhancers:
{_bullets(ACCURACY_ENHANCERS)}

Tone: neutral, concise, evidence-linked.
Responsible gambling: {RESPONSIBLE_GAMBLING_NOTICE}"""


def build_sport_context(profile: SportProfile, request: Optional[AnalysisRequest] = None) -> str:
    t = profile.terminology
    lines = [
        "SPORT-SPECIFIC CONTEXT:",
        f"Analyze this {t.match_term} between two {t.participant_term}s.",
        f"- Sport: {profile.display_name} ({profile.category})",
        f"- Match term: {t.match_term}",
        f"- Participant term: {t.participant_term}",
        f"- Scoring unit: {t.scoring_unit}",
    ]
    if t.has_draw:
        lines.append("- Has draw outcome: Yes (estimate home, draw and away)")
    else:
        lines.append("- Has draw outcome: No (estimate home and away only, omit draw)")
    lines.append(f"- Outcome labels: {', '.join(profile.outcomes)}")
    if request is not None:
        if request.league:
            lines.append(f"- League: {request.league}")
        if request.match_date:
            lines.append(f"- Date: {request.match_date}")

    lines.append("")
    lines.append(f"KEY ANALYSIS FACTORS FOR {profile.display_name.upper()}:")
    lines.extend(f"{i}. {factor}" for i, factor in enumerate(profile.key_factors, start=1))
    return "\n".join(lines)


def build_validation_rules(profile: SportProfile, rules: ValidationRules) -> str:
    bounds = profile.probability_bounds
    upset = profile.upset_bounds
    value = profile.value_thresholds
    tol = fmt_pct(rules.probability_sum_tolerance)

    lines = [
        "PROBABILITY VALIDATION (your answer is checked against these exact rules):",
        "- Values are percentages from 0 to 100.",
        f"- All outcomes must sum to 100% (±{tol}% tolerance).",
        f"- Favorite probability range: {_fmt_range(bounds.favorite)}",
        f"- Underdog probability range: {_fmt_range(bounds.underdog)}",
    ]
    if profile.terminology.has_draw and bounds.draw is not None:
        lines.append(f"- Draw probability range: {_fmt_range(bounds.draw)}")
    lines.extend([
        f"- Heavy favorite: a side above {fmt_pct(upset.heavy_favorite_threshold)}% "
        f"(by your estimate or by the market). "
        f"Upset probability for heavy favorites: max {fmt_pct(upset.max_for_heavy_favorite)}%.",
        f"- Close match: home and away within {fmt_pct(upset.close_match_band)} points. "
        f"Close matches minimum upset probability: {fmt_pct(upset.min_for_close_match)}%.",
        "",
        "VALUE FLAG (largest positive gap between your estimate and the market-implied probability):",
        f"- NONE: below {fmt_pct(value.low)} points, or no market odds supplied",
        f"- LOW: {fmt_pct(value.low)}+ points",
        f"- MEDIUM: {fmt_pct(value.medium)}+ points",
        f"- HIGH: {fmt_pct(value.high)}+ points",
        "- bestValueSide is the outcome with that gap (HOME, DRAW or AWAY), NONE when the flag is NONE.",
    ])
    return "\n".join(lines)


def build_json_instruction(profile: SportProfile) -> str:
    probs = ", ".join(f'"{o}": <number>' for o in profile.outcomes)
    return f"""REQUIRED JSON SCHEMA:
{{
  "outcomeProbabilities": {{{probs}}},
  "riskLevel": "LOW" | "MEDIUM" | "HIGH",
  "valueFlag": "NONE" | "LOW" | "MEDIUM" | "HIGH",
  "bestValueSide": "HOME" | "DRAW" | "AWAY" | "NONE",
  "narrative": "<string>",
  "dataQuality": "LOW" | "MEDIUM" | "HIGH"
}}

{JSON_ONLY_INSTRUCTION}"""


def compose(profile: SportProfile, request: Optional[AnalysisRequest] = None,
            rules: Optional[ValidationRules] = None) -> PromptDocument:
    """Build the system instructions for one analysis. Pure function of its inputs."""
    rules = rules or ValidationRules()
    return PromptDocument(
        identity=build_identity(),
        sport_context=build_sport_context(profile, request),
        validation_rules=build_validation_rules(profile, rules),
        json_instruction=build_json_instruction(profile),
    )


def build_user_payload(profile: SportProfile, request: AnalysisRequest,
                       market: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    """Structured match facts sent alongside the prompt as the user message."""
    payload: Dict[str, Any] = {
        "instruction": (
            f"Analyze the following {profile.display_name} {profile.terminology.match_term} "
            "and return the JSON object defined in the system instructions."
        ),
        "sport": profile.id,
        "home": request.home_team,
        "away": request.away_team,
        "outcomes": profile.outcomes,
    }
    if request.league:
        payload["league"] = request.league
    if request.match_date:
        payload["match_date"] = request.match_date
    if request.odds is not None:
        payload["odds"] = request.odds.model_dump(exclude_none=True)
    if market:
        payload["market_implied"] = market
        payload["bookmaker_margin"] = bookmaker_margin(request.odds, profile.terminology.has_draw)
    if request.context:
        payload["context"] = request.context
    return payload
