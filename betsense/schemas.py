from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Literal, Optional
from enum import Enum

OUTCOME_HOME = "home"
OUTCOME_DRAW = "draw"
OUTCOME_AWAY = "away"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ValueFlag(str, Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class DataQuality(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class BestValueSide(str, Enum):
    HOME = "HOME"
    DRAW = "DRAW"
    AWAY = "AWAY"
    NONE = "NONE"


# ---------------------------------------------------------------------------
# Sport configuration
# ---------------------------------------------------------------------------

class Terminology(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_term: str
    participant_term: str
    scoring_unit: Literal["goals", "points", "games", "sets", "runs", "rounds"]
    has_draw: bool


class ProbabilityRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float = Field(ge=0, le=100)
    max: float = Field(ge=0, le=100)

    @model_validator(mode='after')
    def validate_order(self) -> 'ProbabilityRange':
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


class ProbabilityBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    favorite: ProbabilityRange
    underdog: ProbabilityRange
    draw: Optional[ProbabilityRange] = None


class UpsetBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    heavy_favorite_threshold: float = Field(gt=50, le=100)
    max_for_heavy_favorite: float = Field(ge=0, le=100)
    close_match_band: float = Field(ge=0, le=100)
    min_for_close_match: float = Field(ge=0, le=100)


class ValueThresholds(BaseModel):
    """Percentage-point cut points for the value flag tiers."""
    model_config = ConfigDict(frozen=True)

    low: float = 3
    medium: float = 7
    high: float = 12

    @model_validator(mode='after')
    def validate_tiers(self) -> 'ValueThresholds':
        if not (0 < self.low <= self.medium <= self.high):
            raise ValueError("value thresholds must satisfy 0 < low <= medium <= high")
        return self


class SportProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    odds_api_key: str
    display_name: str
    category: str
    priority: int
    terminology: Terminology
    probability_bounds: ProbabilityBounds
    key_factors: List[str]
    upset_bounds: UpsetBounds
    value_thresholds: ValueThresholds = ValueThresholds()

    @model_validator(mode='after')
    def validate_draw_bounds(self) -> 'SportProfile':
        if self.terminology.has_draw and self.probability_bounds.draw is None:
            raise ValueError(f"{self.id}: draw sports need a draw probability range")
        return self

    @property
    def outcomes(self) -> List[str]:
        if self.terminology.has_draw:
            return [OUTCOME_HOME, OUTCOME_DRAW, OUTCOME_AWAY]
        return [OUTCOME_HOME, OUTCOME_AWAY]


class ValidationRules(BaseModel):
    """Sport-independent rules shared by the prompt and the validator."""
    model_config = ConfigDict(frozen=True)

    probability_sum_tolerance: float = Field(default=2.0, ge=0, le=100)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class MatchOdds(BaseModel):
    home: Optional[float] = None
    draw: Optional[float] = None
    away: Optional[float] = None
    format: Literal["decimal", "american"] = "decimal"

    @model_validator(mode='after')
    def validate_prices(self) -> 'MatchOdds':
        for name in (OUTCOME_HOME, OUTCOME_DRAW, OUTCOME_AWAY):
            price = getattr(self, name)
            if price is None:
                continue
            if self.format == "decimal" and price <= 1.0:
                raise ValueError(f"decimal odds must be > 1.0, got {name}={price}")
            if self.format == "american" and -100 < price < 100:
                raise ValueError(f"American odds must be <= -100 or >= 100, got {name}={price}")
        return self

    @property
    def complete(self) -> bool:
        return self.home is not None and self.away is not None


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sport: str = "soccer"
    home_team: str = Field(alias="homeTeam", min_length=1)
    away_team: str = Field(alias="awayTeam", min_length=1)
    league: Optional[str] = None
    match_date: Optional[str] = Field(default=None, alias="matchDate")
    odds: Optional[MatchOdds] = None
    context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("home_team", "away_team")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("team name must not be blank")
        return v

    @model_validator(mode='after')
    def validate_distinct(self) -> 'AnalysisRequest':
        if self.home_team.casefold() == self.away_team.casefold():
            raise ValueError("homeTeam and awayTeam must differ")
        return self


# ---------------------------------------------------------------------------
# Prompt + result
# ---------------------------------------------------------------------------

class PromptDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: str
    sport_context: str
    validation_rules: str
    json_instruction: str

    @property
    def sections(self) -> List[str]:
        return [self.identity, self.sport_context, self.validation_rules, self.json_instruction]

    @property
    def text(self) -> str:
        return "\n\n".join(self.sections)


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    outcome_probabilities: Dict[str, float] = Field(alias="outcomeProbabilities")
    risk_level: RiskLevel = Field(alias="riskLevel")
    value_flag: ValueFlag = Field(alias="valueFlag")
    best_value_side: BestValueSide = Field(alias="bestValueSide")
    narrative: str
    data_quality: DataQuality = Field(default=DataQuality.MEDIUM, alias="dataQuality")

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
