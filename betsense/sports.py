"""
Sport registry.

Static table of every supported sport: display metadata, terminology used in
prompts, and the numeric bounds the response validator enforces. The table is
assembled once at import; lookups never fail and fall back to the default
profile ("soccer") for unknown keys.
"""

from typing import Dict, Iterable, List, Optional

from betsense.schemas import (
    ProbabilityBounds,
    ProbabilityRange,
    SportProfile,
    Terminology,
    UpsetBounds,
    ValueThresholds,
)

DEFAULT_SPORT = "soccer"

# ---------------------------------------------------------------------------
# Category templates
# ---------------------------------------------------------------------------
# Probability ranges are outer envelopes per outcome class (percent). The
# favorite is the side the model rates higher, the underdog the other side.

SOCCER = {
    "category": "Soccer",
    "terminology": Terminology(match_term="match", participant_term="team", scoring_unit="goals", has_draw=True),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=33, max=90),
        underdog=ProbabilityRange(min=3, max=45),
        draw=ProbabilityRange(min=10, max=40),
    ),
    "key_factors": [
        "Home advantage significance",
        "Recent form (last 5 matches)",
        "Head-to-head history",
        "Key player injuries/suspensions",
        "Motivation factors (league position, cup importance)",
        "Playing style matchup",
        "Defensive vs offensive metrics",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=75, max_for_heavy_favorite=12,
        close_match_band=8, min_for_close_match=20,
    ),
    "value_thresholds": ValueThresholds(low=3, medium=7, high=12),
}

BASKETBALL = {
    "category": "Basketball",
    "terminology": Terminology(match_term="game", participant_term="team", scoring_unit="points", has_draw=False),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=50, max=95),
        underdog=ProbabilityRange(min=5, max=50),
    ),
    "key_factors": [
        "Home court advantage",
        "Back-to-back game fatigue",
        "Pace and tempo matchup",
        "Three-point shooting efficiency",
        "Injury report impact",
        "Recent form streak",
        "Head-to-head record",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=85, max_for_heavy_favorite=15,
        close_match_band=6, min_for_close_match=15,
    ),
    "value_thresholds": ValueThresholds(low=3, medium=7, high=12),
}

AMERICAN_FOOTBALL = {
    "category": "American Football",
    "terminology": Terminology(match_term="game", participant_term="team", scoring_unit="points", has_draw=False),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=50, max=95),
        underdog=ProbabilityRange(min=5, max=50),
    ),
    "key_factors": [
        "Quarterback form and availability",
        "Home field advantage",
        "Offensive vs defensive efficiency",
        "Turnover differential",
        "Injury report impact",
        "Rest days and travel",
        "Weather conditions for outdoor games",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=88, max_for_heavy_favorite=12,
        close_match_band=6, min_for_close_match=15,
    ),
    "value_thresholds": ValueThresholds(low=3, medium=7, high=12),
}

TENNIS = {
    "category": "Tennis",
    "terminology": Terminology(match_term="match", participant_term="player", scoring_unit="sets", has_draw=False),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=50, max=97),
        underdog=ProbabilityRange(min=3, max=50),
    ),
    "key_factors": [
        "Surface preference (hard/clay/grass)",
        "Head-to-head record",
        "Recent tournament performance",
        "Fatigue from previous rounds",
        "Serve vs return game strength",
        "Mental resilience in pressure situations",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=90, max_for_heavy_favorite=10,
        close_match_band=6, min_for_close_match=15,
    ),
    "value_thresholds": ValueThresholds(low=4, medium=8, high=14),
}

HOCKEY = {
    "category": "Ice Hockey",
    "terminology": Terminology(match_term="game", participant_term="team", scoring_unit="goals", has_draw=True),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=30, max=80),
        underdog=ProbabilityRange(min=10, max=45),
        draw=ProbabilityRange(min=15, max=30),
    ),
    "key_factors": [
        "Home ice advantage",
        "Goaltender form and stats",
        "Power play/penalty kill efficiency",
        "Back-to-back game schedule",
        "Special teams performance",
        "Recent scoring trends",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=65, max_for_heavy_favorite=15,
        close_match_band=8, min_for_close_match=20,
    ),
    "value_thresholds": ValueThresholds(low=3, medium=7, high=12),
}

MMA = {
    "category": "Combat Sports",
    "terminology": Terminology(match_term="bout", participant_term="fighter", scoring_unit="rounds", has_draw=True),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=45, max=95),
        underdog=ProbabilityRange(min=5, max=50),
        draw=ProbabilityRange(min=0, max=5),
    ),
    "key_factors": [
        "Fighting style matchup",
        "Reach and height differentials",
        "Recent performance and finish rate",
        "Weight cut impacts",
        "Ground game vs striking preference",
        "Championship fight experience",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=85, max_for_heavy_favorite=15,
        close_match_band=6, min_for_close_match=15,
    ),
    "value_thresholds": ValueThresholds(low=4, medium=8, high=14),
}

BASEBALL = {
    "category": "Baseball",
    "terminology": Terminology(match_term="game", participant_term="team", scoring_unit="runs", has_draw=False),
    "probability_bounds": ProbabilityBounds(
        favorite=ProbabilityRange(min=50, max=80),
        underdog=ProbabilityRange(min=20, max=50),
    ),
    "key_factors": [
        "Starting pitcher matchup",
        "Bullpen fatigue and depth",
        "Home field and ballpark factors",
        "Lineup handedness splits",
        "Recent form streak",
        "Head-to-head record",
    ],
    "upset_bounds": UpsetBounds(
        heavy_favorite_threshold=75, max_for_heavy_favorite=25,
        close_match_band=6, min_for_close_match=15,
    ),
    "value_thresholds": ValueThresholds(low=3, medium=6, high=10),
}


def _profile(id: str, display_name: str, priority: int, template: dict,
             odds_api_key: Optional[str] = None) -> SportProfile:
    return SportProfile(
        id=id,
        odds_api_key=odds_api_key or id,
        display_name=display_name,
        priority=priority,
        **template,
    )


SPORT_PROFILES: Dict[str, SportProfile] = {p.id: p for p in (
    _profile("soccer", "Soccer", 1, SOCCER),
    _profile("soccer_epl", "Premier League", 2, SOCCER),
    _profile("soccer_spain_la_liga", "La Liga", 3, SOCCER),
    _profile("soccer_germany_bundesliga", "Bundesliga", 4, SOCCER),
    _profile("soccer_italy_serie_a", "Serie A", 5, SOCCER),
    _profile("soccer_france_ligue_one", "Ligue 1", 6, SOCCER),
    _profile("soccer_uefa_champs_league", "UEFA Champions League", 7, SOCCER),
    _profile("basketball_nba", "NBA", 10, BASKETBALL),
    _profile("basketball_euroleague", "EuroLeague", 11, BASKETBALL),
    _profile("basketball_ncaab", "NCAA Basketball", 12, BASKETBALL),
    _profile("americanfootball_nfl", "NFL", 20, AMERICAN_FOOTBALL),
    _profile("americanfootball_ncaaf", "NCAA Football", 21, AMERICAN_FOOTBALL),
    _profile("tennis_atp_aus_open", "ATP Australian Open", 30, TENNIS),
    _profile("tennis_atp_french_open", "ATP French Open", 31, TENNIS),
    _profile("tennis_atp_wimbledon", "ATP Wimbledon", 32, TENNIS),
    _profile("tennis_atp_us_open", "ATP US Open", 33, TENNIS),
    _profile("icehockey_nhl", "NHL", 40, HOCKEY),
    _profile("mma_mixed_martial_arts", "UFC / MMA", 50, MMA),
    _profile("baseball_mlb", "MLB", 60, BASEBALL),
)}

# Short names users actually type
SPORT_ALIASES: Dict[str, str] = {
    "football": "soccer",
    "epl": "soccer_epl",
    "premier league": "soccer_epl",
    "champions league": "soccer_uefa_champs_league",
    "basketball": "basketball_nba",
    "nba": "basketball_nba",
    "ncaab": "basketball_ncaab",
    "american football": "americanfootball_nfl",
    "nfl": "americanfootball_nfl",
    "ncaaf": "americanfootball_ncaaf",
    "tennis": "tennis_atp_wimbledon",
    "atp": "tennis_atp_wimbledon",
    "hockey": "icehockey_nhl",
    "ice hockey": "icehockey_nhl",
    "nhl": "icehockey_nhl",
    "mma": "mma_mixed_martial_arts",
    "ufc": "mma_mixed_martial_arts",
    "baseball": "baseball_mlb",
    "mlb": "baseball_mlb",
}


def _normalize(key: Optional[str]) -> str:
    if not key:
        return ""
    return " ".join(str(key).strip().lower().replace("-", " ").split())


class SportRegistry:
    """Read-only lookup over a table of sport profiles."""

    def __init__(self, profiles: Iterable[SportProfile],
                 aliases: Optional[Dict[str, str]] = None,
                 default_key: str = DEFAULT_SPORT):
        self._profiles: Dict[str, SportProfile] = {p.id: p for p in profiles}
        if default_key not in self._profiles:
            raise ValueError(f"default sport '{default_key}' is not in the table")
        self.default_key = default_key

        index: Dict[str, str] = {}
        for p in self._profiles.values():
            index.setdefault(_normalize(p.display_name), p.id)
            index[_normalize(p.odds_api_key)] = p.id
            index[_normalize(p.id)] = p.id
        for alias, target in (aliases or {}).items():
            if target in self._profiles:
                index.setdefault(_normalize(alias), target)
        self._index = index

    @property
    def default(self) -> SportProfile:
        return self._profiles[self.default_key]

    def resolve(self, sport_key: Optional[str]) -> SportProfile:
        """Return the profile for ``sport_key``, or the default profile on a miss."""
        sport_id = self._index.get(_normalize(sport_key))
        if sport_id is None:
            return self.default
        return self._profiles[sport_id]

    def __contains__(self, sport_key: str) -> bool:
        return _normalize(sport_key) in self._index

    def all_profiles(self) -> List[SportProfile]:
        return sorted(self._profiles.values(), key=lambda p: p.priority)

    def grouped_by_category(self) -> Dict[str, List[SportProfile]]:
        grouped: Dict[str, List[SportProfile]] = {}
        for p in self.all_profiles():
            grouped.setdefault(p.category, []).append(p)
        return grouped

    def categories(self) -> List[Dict[str, str]]:
        return [
            {"id": name.lower().replace(" ", "-"), "name": name}
            for name in self.grouped_by_category()
        ]


REGISTRY = SportRegistry(SPORT_PROFILES.values(), aliases=SPORT_ALIASES)


def resolve(sport_key: Optional[str]) -> SportProfile:
    return REGISTRY.resolve(sport_key)
