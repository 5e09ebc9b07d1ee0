"""
Model Response Validator

Re-checks a model's structured answer against the same numeric rules that
were written into its prompt, instead of trusting the model's arithmetic.

Checks run in order and stop at the first rejection:
    1. parse        - extract one JSON object from the raw text
    2. schema       - required fields present with the right types
    3. sum          - outcome probabilities sum to 100 within tolerance
    4. bounds       - each probability inside the sport's range
    5. upset        - heavy-favorite ceiling and close-match floor
    6. value flag   - recomputed from the market differential; the
                      validator's value always replaces the model's

Rejections are returned as ValidationFailure values, never raised.
"""

import json
import logging
import math
import re
from enum import Enum
from typing import Any, Dict, Optional, Union

from betsense.odds import assess_value
from betsense.schemas import (
    OUTCOME_AWAY,
    OUTCOME_DRAW,
    OUTCOME_HOME,
    AnalysisResult,
    DataQuality,
    RiskLevel,
    SportProfile,
    ValidationRules,
    ValueFlag,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

REQUIRED_FIELDS = ("outcomeProbabilities", "riskLevel", "valueFlag", "bestValueSide", "narrative")

# Containers the model may put the probabilities in, in lookup order.
PROBABILITY_CONTAINERS = ("outcomeProbabilities", "probabilities")

OUTCOME_ALIASES = {
    "home": OUTCOME_HOME,
    "homewin": OUTCOME_HOME,
    "home_win": OUTCOME_HOME,
    "draw": OUTCOME_DRAW,
    "away": OUTCOME_AWAY,
    "awaywin": OUTCOME_AWAY,
    "away_win": OUTCOME_AWAY,
}

# Floating point slack when comparing against configured limits
EPSILON = 1e-9

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


class FailureCode(str, Enum):
    MALFORMED_RESPONSE = "MalformedResponse"
    SCHEMA_VIOLATION = "SchemaViolation"
    PROBABILITY_SUM_VIOLATION = "ProbabilitySumViolation"
    PROBABILITY_BOUND_VIOLATION = "ProbabilityBoundViolation"
    UPSET_BOUND_VIOLATION = "UpsetBoundViolation"


# ---------------------------------------------------------------------------
# Structured failure
# ---------------------------------------------------------------------------

class ValidationFailure:
    """Machine-readable + human-readable rejection of a model response."""

    __slots__ = ("code", "field", "message", "meta")

    def __init__(self, code: FailureCode, field: str, message: str,
                 meta: Optional[Dict[str, Any]] = None):
        self.code = code
        self.field = field
        self.message = message
        self.meta = meta or {}

    @property
    def rule(self) -> str:
        return self.code.value

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "code": self.code.value,
            "field": self.field,
            "message": self.message,
        }
        if self.meta:
            d["meta"] = self.meta
        return d

    def __repr__(self) -> str:
        return f"ValidationFailure({self.code.value!r}, {self.field!r}, {self.message!r})"


class _Rejected(Exception):
    """Internal short-circuit carrying the failure out of a check."""

    def __init__(self, failure: ValidationFailure):
        super().__init__(failure.message)
        self.failure = failure


def _reject(code: FailureCode, field: str, message: str, **meta: Any) -> None:
    raise _Rejected(ValidationFailure(code, field, message, meta))


def _is_number(v: Any) -> bool:
    # bool is a subclass of int; NaN and infinities never pass a range check
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


# ---------------------------------------------------------------------------
# 1. Parse
# ---------------------------------------------------------------------------

def extract_json_object(raw: Any) -> Dict[str, Any]:
    """Pull a single JSON object out of provider text.

    Accepts bare JSON, JSON inside a markdown fence, or JSON surrounded by
    prose. Already-decoded dicts pass through.
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        _reject(FailureCode.MALFORMED_RESPONSE, "_root", "Response is empty or not text",
                got=type(raw).__name__)

    text = raw.strip()
    candidates = [text]
    fence = _FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    _reject(FailureCode.MALFORMED_RESPONSE, "_root", "No JSON object could be extracted from the response",
            excerpt=text[:200])


# ---------------------------------------------------------------------------
# 2. Schema
# ---------------------------------------------------------------------------

def _find_probabilities(data: Dict[str, Any]) -> Dict[str, Any]:
    for key in PROBABILITY_CONTAINERS:
        if key in data:
            container = data[key]
            if not isinstance(container, dict):
                _reject(FailureCode.SCHEMA_VIOLATION, key,
                        f"Field '{key}' must be an object, got {type(container).__name__}",
                        expected="object", got=type(container).__name__)
            return container
    # Flat layout: {"home": 55, "draw": 25, "away": 20, ...}
    flat = {k: v for k, v in data.items() if k.lower() in OUTCOME_ALIASES}
    if flat:
        return flat
    _reject(FailureCode.SCHEMA_VIOLATION, "outcomeProbabilities",
            "Required field 'outcomeProbabilities' is missing")


def _check_probabilities(data: Dict[str, Any], profile: SportProfile) -> Dict[str, float]:
    container = _find_probabilities(data)
    probs: Dict[str, Any] = {}
    for key, value in container.items():
        label = OUTCOME_ALIASES.get(str(key).lower())
        if label is None:
            # over/under and similar side markets are not part of the outcome set
            continue
        probs[label] = value

    has_draw = profile.terminology.has_draw
    if not has_draw and probs.get(OUTCOME_DRAW) is None:
        probs.pop(OUTCOME_DRAW, None)

    for label in profile.outcomes:
        if label not in probs or probs[label] is None:
            _reject(FailureCode.SCHEMA_VIOLATION, f"outcomeProbabilities.{label}",
                    f"Required probability '{label}' is missing")
    for label, value in probs.items():
        if not _is_number(value):
            _reject(FailureCode.SCHEMA_VIOLATION, f"outcomeProbabilities.{label}",
                    f"Probability '{label}' must be a finite number, got {value!r}",
                    expected="number", got=type(value).__name__)
    return {label: float(value) for label, value in probs.items()}


def _check_enum(data: Dict[str, Any], field: str, enum_cls, default=None):
    if field not in data or data[field] is None:
        if default is not None:
            return default
        _reject(FailureCode.SCHEMA_VIOLATION, field, f"Required field '{field}' is missing")
    value = data[field]
    if not isinstance(value, str):
        _reject(FailureCode.SCHEMA_VIOLATION, field,
                f"Field '{field}' must be a string, got {type(value).__name__}",
                expected="str", got=type(value).__name__)
    allowed = [e.value for e in enum_cls]
    normalized = value.strip().upper()
    if normalized not in allowed:
        _reject(FailureCode.SCHEMA_VIOLATION, field,
                f"{field} must be one of {allowed}, got '{value}'",
                allowed=allowed, got=value)
    return enum_cls(normalized)


def _check_text(data: Dict[str, Any], field: str) -> str:
    if field not in data or data[field] is None:
        _reject(FailureCode.SCHEMA_VIOLATION, field, f"Required field '{field}' is missing")
    value = data[field]
    if not isinstance(value, str):
        _reject(FailureCode.SCHEMA_VIOLATION, field,
                f"Field '{field}' must be a string, got {type(value).__name__}",
                expected="str", got=type(value).__name__)
    return value.strip()


# ---------------------------------------------------------------------------
# 3-5. Numeric rules
# ---------------------------------------------------------------------------

def _favorite_split(probs: Dict[str, float]):
    """(favorite_label, underdog_label) by model probability; ties go home."""
    if probs[OUTCOME_HOME] >= probs[OUTCOME_AWAY]:
        return OUTCOME_HOME, OUTCOME_AWAY
    return OUTCOME_AWAY, OUTCOME_HOME


def _check_sum(probs: Dict[str, float], rules: ValidationRules) -> None:
    total = round(sum(probs.values()), 6)
    deviation = abs(total - 100.0)
    if deviation > rules.probability_sum_tolerance + EPSILON:
        _reject(FailureCode.PROBABILITY_SUM_VIOLATION, "outcomeProbabilities",
                f"Probabilities sum to {total:g}, outside 100 ± {rules.probability_sum_tolerance:g}",
                sum=total, tolerance=rules.probability_sum_tolerance, probabilities=probs)


def _check_bounds(probs: Dict[str, float], profile: SportProfile) -> None:
    bounds = profile.probability_bounds
    fav, dog = _favorite_split(probs)
    checks = [(fav, "favorite", bounds.favorite), (dog, "underdog", bounds.underdog)]

    if OUTCOME_DRAW in probs:
        if not profile.terminology.has_draw or bounds.draw is None:
            if abs(probs[OUTCOME_DRAW]) > EPSILON:
                _reject(FailureCode.PROBABILITY_BOUND_VIOLATION, OUTCOME_DRAW,
                        f"{profile.display_name} has no draw outcome, got draw={probs[OUTCOME_DRAW]:g}",
                        outcome=OUTCOME_DRAW, got=probs[OUTCOME_DRAW])
        else:
            checks.append((OUTCOME_DRAW, "draw", bounds.draw))

    for label, role, rng in checks:
        value = probs[label]
        if not rng.contains(value):
            _reject(FailureCode.PROBABILITY_BOUND_VIOLATION, label,
                    f"{role} probability for '{label}' is {value:g}, "
                    f"outside {profile.display_name} range [{rng.min:g}, {rng.max:g}]",
                    outcome=label, role=role, got=value, min=rng.min, max=rng.max)


def _check_upsets(probs: Dict[str, float], profile: SportProfile,
                  market: Optional[Dict[str, float]]) -> None:
    upset = profile.upset_bounds
    fav, dog = _favorite_split(probs)

    # Heavy favorite by the model's own estimate
    if probs[fav] > upset.heavy_favorite_threshold + EPSILON and \
            probs[dog] > upset.max_for_heavy_favorite + EPSILON:
        _reject(FailureCode.UPSET_BOUND_VIOLATION, dog,
                f"Heavy favorite '{fav}' at {probs[fav]:g}% leaves underdog '{dog}' at {probs[dog]:g}%, "
                f"above the {upset.max_for_heavy_favorite:g}% ceiling",
                favorite=fav, favorite_probability=probs[fav], underdog=dog,
                underdog_probability=probs[dog], source="model",
                heavy_favorite_threshold=upset.heavy_favorite_threshold,
                max_for_heavy_favorite=upset.max_for_heavy_favorite)

    # Heavy favorite by the market's implied probability
    if market and OUTCOME_HOME in market and OUTCOME_AWAY in market:
        m_fav = OUTCOME_HOME if market[OUTCOME_HOME] >= market[OUTCOME_AWAY] else OUTCOME_AWAY
        m_dog = OUTCOME_AWAY if m_fav == OUTCOME_HOME else OUTCOME_HOME
        if market[m_fav] > upset.heavy_favorite_threshold + EPSILON and \
                probs[m_dog] > upset.max_for_heavy_favorite + EPSILON:
            _reject(FailureCode.UPSET_BOUND_VIOLATION, m_dog,
                    f"Market prices '{m_fav}' at {market[m_fav]:g}% but the model gives '{m_dog}' "
                    f"{probs[m_dog]:g}%, above the {upset.max_for_heavy_favorite:g}% ceiling",
                    favorite=m_fav, favorite_probability=market[m_fav], underdog=m_dog,
                    underdog_probability=probs[m_dog], source="market",
                    heavy_favorite_threshold=upset.heavy_favorite_threshold,
                    max_for_heavy_favorite=upset.max_for_heavy_favorite)

    spread = abs(probs[OUTCOME_HOME] - probs[OUTCOME_AWAY])
    if spread <= upset.close_match_band + EPSILON and \
            probs[dog] < upset.min_for_close_match - EPSILON:
        _reject(FailureCode.UPSET_BOUND_VIOLATION, dog,
                f"Close match (spread {spread:g}) but underdog '{dog}' is only {probs[dog]:g}%, "
                f"below the {upset.min_for_close_match:g}% floor",
                spread=spread, underdog=dog, underdog_probability=probs[dog],
                close_match_band=upset.close_match_band,
                min_for_close_match=upset.min_for_close_match)


# ---------------------------------------------------------------------------
# Core validator
# ---------------------------------------------------------------------------

class ResponseValidator:
    """Stateless validator for model analysis responses.

    Usage::

        outcome = ResponseValidator(rules).validate(raw_text, profile, market)
        if isinstance(outcome, ValidationFailure):
            print(outcome.code, outcome.message)
    """

    def __init__(self, rules: Optional[ValidationRules] = None):
        self.rules = rules or ValidationRules()

    def validate(self, raw: Any, profile: SportProfile,
                 market: Optional[Dict[str, float]] = None) -> Union[AnalysisResult, ValidationFailure]:
        """Validate one model response for one sport.

        Parameters
        ----------
        raw : str | dict
            Provider text (or an already-decoded object).
        profile : SportProfile
            Sport whose bounds apply.
        market : dict, optional
            Market-implied outcome probabilities in percent, the reference
            for the value flag and the market heavy-favorite check.

        Returns
        -------
        AnalysisResult | ValidationFailure
        """
        try:
            data = extract_json_object(raw)

            probs = _check_probabilities(data, profile)
            risk_level = _check_enum(data, "riskLevel", RiskLevel)
            model_flag = _check_enum(data, "valueFlag", ValueFlag)
            model_side = _check_text(data, "bestValueSide")
            narrative = _check_text(data, "narrative")
            data_quality = _check_enum(data, "dataQuality", DataQuality, default=DataQuality.MEDIUM)

            _check_sum(probs, self.rules)
            _check_bounds(probs, profile)
            _check_upsets(probs, profile, market)
        except _Rejected as r:
            logger.warning("Rejected %s response: %s", profile.id, r.failure.message)
            return r.failure

        if not profile.terminology.has_draw:
            probs.pop(OUTCOME_DRAW, None)

        value_flag, best_side, differential = assess_value(probs, market, profile.value_thresholds)
        if value_flag is not model_flag or best_side.value != model_side.upper():
            logger.info("Corrected value flag %s/%s -> %s/%s (differential %.2f)",
                        model_flag.value, model_side, value_flag.value, best_side.value, differential)

        return AnalysisResult(
            outcome_probabilities=probs,
            risk_level=risk_level,
            value_flag=value_flag,
            best_value_side=best_side,
            narrative=narrative,
            data_quality=data_quality,
        )


def validate(raw: Any, profile: SportProfile, market: Optional[Dict[str, float]] = None,
             rules: Optional[ValidationRules] = None) -> Union[AnalysisResult, ValidationFailure]:
    return ResponseValidator(rules).validate(raw, profile, market)
