"""
Match analysis pipeline.

resolve sport -> compose prompt -> query model -> validate response.
Provider failures raise (ProviderError family); validation rejections are
returned as ValidationFailure values.
"""

import logging
from typing import Any, Dict, Optional, Union

from betsense.config import SETTINGS, Settings
from betsense.llm import ModelGateway
from betsense.odds import implied_probabilities
from betsense.prompts import build_user_payload, compose
from betsense.schemas import AnalysisRequest, AnalysisResult, MatchOdds, ValidationRules
from betsense.sports import REGISTRY, SportRegistry
from betsense.validator import ResponseValidator, ValidationFailure

logger = logging.getLogger(__name__)


class Analyzer:
    """Owns the process-scoped collaborators of the pipeline.

    Every collaborator can be injected, so tests substitute a fake model
    client or a custom sport table without touching module state.
    """

    def __init__(self, registry: Optional[SportRegistry] = None,
                 gateway: Optional[ModelGateway] = None,
                 rules: Optional[ValidationRules] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or SETTINGS
        self.registry = registry or REGISTRY
        self.gateway = gateway or ModelGateway(self.settings)
        self.rules = rules or ValidationRules(
            probability_sum_tolerance=self.settings.probability_sum_tolerance
        )
        self.validator = ResponseValidator(self.rules)

    def analyze(self, request: AnalysisRequest,
                timeout: Optional[float] = None) -> Union[AnalysisResult, ValidationFailure]:
        profile = self.registry.resolve(request.sport)
        if profile.id != request.sport:
            logger.info("Sport '%s' resolved to profile '%s'", request.sport, profile.id)

        market = implied_probabilities(request.odds, profile.terminology.has_draw)
        prompt = compose(profile, request, self.rules)
        payload = build_user_payload(profile, request, market)

        raw = self.gateway.query(prompt, payload, timeout=timeout)
        outcome = self.validator.validate(raw, profile, market)
        if isinstance(outcome, ValidationFailure):
            logger.warning("Analysis %s vs %s rejected: %s",
                           request.home_team, request.away_team, outcome.code.value)
        return outcome


def analyze(sport_key: str, home: str, away: str, context: Optional[Dict[str, Any]] = None,
            league: Optional[str] = None, match_date: Optional[str] = None,
            odds: Optional[MatchOdds] = None,
            analyzer: Optional[Analyzer] = None) -> Union[AnalysisResult, ValidationFailure]:
    """Analyze one match from plain values."""
    request = AnalysisRequest(
        sport=sport_key,
        home_team=home,
        away_team=away,
        league=league,
        match_date=match_date,
        odds=odds,
        context=context or {},
    )
    return (analyzer or Analyzer()).analyze(request)
