import math
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np
from scipy.stats import poisson

from worldcup_sim.config import EngineConfig


BASE_EXPECTED_GOALS = 1.5
SKILL_DIFF_PER_GOAL = 50.0
MAX_EXPECTED_GOALS = 4.0
EXPLICIT_GOAL_OUTCOMES = np.arange(4)
HIGH_SCORE_PROB = 0.1
HIGH_SCORE_BASE = 4
HIGH_SCORE_SPREAD = 3
FALLBACK_MAX_GOALS = 4

ELO_SCALE = 400.0

PENALTY_BASE_RATE = 0.75
PENALTY_SKILL_RATE = 0.15
PENALTY_ROUNDS = 5


@dataclass(frozen=True)
class PenaltyResult:
    home_score: int
    away_score: int

    @property
    def winner_side(self) -> str:
        return "home" if self.home_score > self.away_score else "away"


@dataclass(frozen=True)
class RatingChange:
    home_change: int
    away_change: int


@dataclass(frozen=True)
class MatchResult:
    home_score: int
    away_score: int
    home_skill_change: int
    away_skill_change: int
    penalties: Optional[PenaltyResult] = None

    @property
    def is_draw(self) -> bool:
        return self.home_score == self.away_score

    @property
    def outcome(self) -> str:
        if self.home_score > self.away_score:
            return "home"
        if self.home_score < self.away_score:
            return "away"
        return "draw"


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _resolve_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def expected_goals(
    home_skill: float, away_skill: float, home_advantage: float = 0.0
) -> Tuple[float, float]:
    diff = (home_skill + home_advantage) - away_skill
    shift = diff / SKILL_DIFF_PER_GOAL
    return BASE_EXPECTED_GOALS + shift, BASE_EXPECTED_GOALS - shift


def generate_goals(expected: float, rng: Optional[np.random.Generator] = None) -> int:
    """
    Approximate Poisson draw for one side's goals.

    Outcomes 0-3 follow the Poisson CDF with the clamped mean. Anything past
    that is not the Poisson tail: 10% of the remaining draws give 4-6 goals,
    the rest a flat 0-4.
    """
    rng = _resolve_rng(rng)
    lam = min(max(float(expected), 0.0), MAX_EXPECTED_GOALS)
    u = rng.random()
    if lam <= 0.0:
        return 0
    cdf = poisson.cdf(EXPLICIT_GOAL_OUTCOMES, lam)
    for goals, mass in zip(EXPLICIT_GOAL_OUTCOMES, cdf):
        if u < mass:
            return int(goals)
    if rng.random() > 1.0 - HIGH_SCORE_PROB:
        return HIGH_SCORE_BASE + int(rng.integers(0, HIGH_SCORE_SPREAD))
    return int(rng.integers(0, FALLBACK_MAX_GOALS + 1))


def expected_score(home_skill: float, away_skill: float) -> float:
    return 1.0 / (1.0 + 10.0 ** ((away_skill - home_skill) / ELO_SCALE))


def update_ratings(
    home_skill: float,
    away_skill: float,
    home_score: int,
    away_score: int,
    k_factor: float,
) -> RatingChange:
    expected = expected_score(home_skill, away_skill)
    if home_score > away_score:
        actual = 1.0
    elif home_score == away_score:
        actual = 0.5
    else:
        actual = 0.0
    home_change = round_half_up(k_factor * (actual - expected))
    return RatingChange(home_change=home_change, away_change=-home_change)


def clamp_rating(current: int, delta: int, skill_min: int, skill_max: int) -> int:
    return int(max(skill_min, min(skill_max, current + delta)))


def simulate_match(
    home_skill: float,
    away_skill: float,
    config: EngineConfig,
    neutral_site: bool = False,
    rng: Optional[np.random.Generator] = None,
) -> MatchResult:
    rng = _resolve_rng(rng)
    home_skill = min(max(home_skill, config.skill_min), config.skill_max)
    away_skill = min(max(away_skill, config.skill_min), config.skill_max)

    hga = 0.0 if neutral_site else config.home_advantage
    home_expected, away_expected = expected_goals(home_skill, away_skill, hga)
    home_score = generate_goals(home_expected, rng)
    away_score = generate_goals(away_expected, rng)

    change = update_ratings(home_skill, away_skill, home_score, away_score, config.k_factor)
    return MatchResult(
        home_score=home_score,
        away_score=away_score,
        home_skill_change=change.home_change,
        away_skill_change=change.away_change,
    )


def penalty_conversion_rate(skill: float) -> float:
    skill = min(max(float(skill), 0.0), 100.0)
    return PENALTY_BASE_RATE + (skill / 100.0) * PENALTY_SKILL_RATE


def penalty_shootout(
    home_skill: float,
    away_skill: float,
    rng: Optional[np.random.Generator] = None,
) -> PenaltyResult:
    rng = _resolve_rng(rng)
    p_home = penalty_conversion_rate(home_skill)
    p_away = penalty_conversion_rate(away_skill)

    home_score = 0
    away_score = 0
    for _ in range(PENALTY_ROUNDS):
        if rng.random() < p_home:
            home_score += 1
        if rng.random() < p_away:
            away_score += 1

    # sudden death: rates sit in [0.75, 0.90], so this ends almost surely
    while home_score == away_score:
        if rng.random() < p_home:
            home_score += 1
        if rng.random() < p_away:
            away_score += 1

    return PenaltyResult(home_score=home_score, away_score=away_score)


def simulate_knockout_match(
    home_skill: float,
    away_skill: float,
    config: EngineConfig,
    neutral_site: bool = True,
    rng: Optional[np.random.Generator] = None,
) -> MatchResult:
    rng = _resolve_rng(rng)
    result = simulate_match(home_skill, away_skill, config, neutral_site=neutral_site, rng=rng)
    if not result.is_draw:
        return result
    return replace(result, penalties=penalty_shootout(home_skill, away_skill, rng))
