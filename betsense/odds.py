from typing import Dict, Optional, Tuple

from betsense.schemas import (
    OUTCOME_AWAY,
    OUTCOME_DRAW,
    OUTCOME_HOME,
    BestValueSide,
    MatchOdds,
    ValueFlag,
    ValueThresholds,
)

SIDE_FOR_OUTCOME = {
    OUTCOME_HOME: BestValueSide.HOME,
    OUTCOME_DRAW: BestValueSide.DRAW,
    OUTCOME_AWAY: BestValueSide.AWAY,
}


def american_to_implied_prob(price_american: float) -> float:
    """Convert American odds to implied probability."""
    if price_american > 0:
        return 100 / (price_american + 100)
    else:
        return abs(price_american) / (abs(price_american) + 100)


def decimal_to_implied_prob(price_decimal: float) -> float:
    """Convert decimal odds to implied probability."""
    if price_decimal <= 1.0:
        raise ValueError(f"decimal odds must be > 1.0, got {price_decimal}")
    return 1.0 / price_decimal


def implied_probabilities(odds: Optional[MatchOdds], has_draw: bool) -> Optional[Dict[str, float]]:
    """Market-implied outcome probabilities in percent, bookmaker margin removed.

    Returns None when home or away prices are missing, or when a draw sport
    has no draw price. The draw price is ignored for sports without a draw.
    """
    if odds is None or not odds.complete:
        return None
    if has_draw and odds.draw is None:
        return None

    convert = american_to_implied_prob if odds.format == "american" else decimal_to_implied_prob
    raw = {OUTCOME_HOME: convert(odds.home), OUTCOME_AWAY: convert(odds.away)}
    if has_draw:
        raw[OUTCOME_DRAW] = convert(odds.draw)

    total = sum(raw.values())
    return {k: round(v / total * 100, 2) for k, v in raw.items()}


def bookmaker_margin(odds: Optional[MatchOdds], has_draw: bool) -> Optional[float]:
    """Overround in percentage points, or None without a complete price set."""
    if odds is None or not odds.complete:
        return None
    convert = american_to_implied_prob if odds.format == "american" else decimal_to_implied_prob
    total = convert(odds.home) + convert(odds.away)
    if has_draw and odds.draw is not None:
        total += convert(odds.draw)
    return round((total - 1.0) * 100, 2)


def classify_value(differential: float, thresholds: ValueThresholds) -> ValueFlag:
    """Bucket a model-minus-market differential (percentage points) into a tier."""
    if differential >= thresholds.high:
        return ValueFlag.HIGH
    elif differential >= thresholds.medium:
        return ValueFlag.MEDIUM
    elif differential >= thresholds.low:
        return ValueFlag.LOW
    return ValueFlag.NONE


def assess_value(
    model_probs: Dict[str, float],
    market_probs: Optional[Dict[str, float]],
    thresholds: ValueThresholds,
) -> Tuple[ValueFlag, BestValueSide, float]:
    """Deterministic value classification.

    Args:
        model_probs: Model outcome probabilities (percent)
        market_probs: Market implied probabilities (percent), or None
        thresholds: Sport value-flag cut points

    Returns:
        (value_flag, best_value_side, differential) where the differential is
        the largest positive model-minus-market gap. Without a market
        reference there is nothing to compare against and the flag is NONE.
    """
    if not market_probs:
        return ValueFlag.NONE, BestValueSide.NONE, 0.0

    best_outcome = None
    best_edge = 0.0
    for outcome in (OUTCOME_HOME, OUTCOME_DRAW, OUTCOME_AWAY):
        if outcome not in model_probs or outcome not in market_probs:
            continue
        edge = round(model_probs[outcome] - market_probs[outcome], 2)
        if edge > best_edge:
            best_outcome, best_edge = outcome, edge

    flag = classify_value(best_edge, thresholds)
    if flag is ValueFlag.NONE or best_outcome is None:
        return ValueFlag.NONE, BestValueSide.NONE, best_edge
    return flag, SIDE_FOR_OUTCOME[best_outcome], best_edge
