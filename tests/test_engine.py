import numpy as np
import pytest

from worldcup_sim import engine
from worldcup_sim.config import EngineConfig
from worldcup_sim.engine import (
    MatchResult,
    PenaltyResult,
    RatingChange,
    clamp_rating,
    expected_goals,
    expected_score,
    generate_goals,
    penalty_conversion_rate,
    penalty_shootout,
    round_half_up,
    simulate_knockout_match,
    simulate_match,
    update_ratings,
)


def test_expected_goals_shift_with_home_advantage():
    home, away = expected_goals(85, 70, home_advantage=3)
    assert home == pytest.approx(1.86)
    assert away == pytest.approx(1.14)
    assert home + away == pytest.approx(3.0)


def test_generate_goals_non_positive_mean_scores_nothing(scripted_rng):
    assert generate_goals(0.0, scripted_rng(randoms=[0.99])) == 0
    assert generate_goals(-2.5, scripted_rng(randoms=[0.99])) == 0


def test_generate_goals_follows_poisson_cdf(scripted_rng):
    # lam 1.5: P(0) ~ .223, P(<=1) ~ .558
    assert generate_goals(1.5, scripted_rng(randoms=[0.1])) == 0
    assert generate_goals(1.5, scripted_rng(randoms=[0.3])) == 1


def test_generate_goals_mean_is_capped(scripted_rng):
    # P(0) at lam 4 is ~.018, far below what an uncapped lam would give
    assert generate_goals(10.0, scripted_rng(randoms=[0.01])) == 0
    assert generate_goals(10.0, scripted_rng(randoms=[0.05])) == 1


def test_generate_goals_tail_branches(scripted_rng):
    high = scripted_rng(randoms=[0.99, 0.95], integers=[2])
    assert generate_goals(1.5, high) == 6
    flat = scripted_rng(randoms=[0.99, 0.5], integers=[3])
    assert generate_goals(1.5, flat) == 3


def test_generate_goals_range():
    rng = np.random.default_rng(7)
    draws = [generate_goals(lam, rng) for lam in np.linspace(0, 6, 50) for _ in range(40)]
    assert min(draws) >= 0
    assert max(draws) <= 6


def test_expected_score_is_symmetric():
    assert expected_score(70, 70) == pytest.approx(0.5)
    assert expected_score(88, 70) == pytest.approx(0.5259, abs=1e-4)
    assert expected_score(88, 70) + expected_score(70, 88) == pytest.approx(1.0)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(2.49) == 2


def test_update_ratings_favourite_wins():
    # expected ~.5216, so 5 * .4784 rounds to 2
    assert update_ratings(85, 70, 2, 1, 5) == RatingChange(home_change=2, away_change=-2)


def test_update_ratings_equal_teams_rounds_half_up():
    assert update_ratings(70, 70, 1, 0, 5) == RatingChange(3, -3)
    assert update_ratings(70, 70, 1, 1, 5) == RatingChange(0, 0)


@pytest.mark.parametrize("home,away", [(30, 100), (60, 60), (95, 40)])
@pytest.mark.parametrize("k", [1, 5, 20, 50])
def test_update_ratings_zero_sum_and_direction(home, away, k):
    win = update_ratings(home, away, 3, 0, k)
    loss = update_ratings(home, away, 0, 3, k)
    draw = update_ratings(home, away, 2, 2, k)
    for change in (win, loss, draw):
        assert change.home_change + change.away_change == 0
    assert win.home_change >= 0
    assert loss.home_change <= 0
    if home > away:
        assert draw.home_change <= 0
    elif home < away:
        assert draw.home_change >= 0


def test_clamp_rating_bounds_and_idempotence():
    assert clamp_rating(99, 5, 30, 100) == 100
    assert clamp_rating(31, -4, 30, 100) == 30
    assert clamp_rating(60, 3, 30, 100) == 63
    once = clamp_rating(150, 0, 30, 100)
    assert clamp_rating(once, 0, 30, 100) == once


def test_simulate_match_result_shape(config):
    rng = np.random.default_rng(3)
    for _ in range(200):
        result = simulate_match(80, 55, config, rng=rng)
        assert isinstance(result, MatchResult)
        assert result.home_score >= 0 and result.away_score >= 0
        assert result.home_skill_change == -result.away_skill_change
        assert result.penalties is None


def test_simulate_match_neutral_site_drops_home_advantage(monkeypatch, config):
    seen = []

    def fake_goals(expected, rng=None):
        seen.append(expected)
        return 1

    monkeypatch.setattr(engine, "generate_goals", fake_goals)
    simulate_match(70, 70, config, neutral_site=True)
    simulate_match(70, 70, config, neutral_site=False)
    assert seen[0] == pytest.approx(1.5)
    assert seen[2] == pytest.approx(1.56)


def test_simulate_match_clamps_input_skills(monkeypatch, config):
    seen = []
    monkeypatch.setattr(engine, "generate_goals", lambda e, rng=None: seen.append(e) or 0)
    simulate_match(150, 20, config, neutral_site=True)
    # 100 vs 30 after clamping
    assert seen[0] == pytest.approx(2.9)


def test_penalty_conversion_rate():
    assert penalty_conversion_rate(0) == pytest.approx(0.75)
    assert penalty_conversion_rate(100) == pytest.approx(0.90)
    assert penalty_conversion_rate(250) == pytest.approx(0.90)


def test_penalty_shootout_goes_to_sudden_death(scripted_rng):
    rng = scripted_rng(randoms=[0.0] * 10 + [0.99, 0.0])
    result = penalty_shootout(80, 80, rng)
    assert result == PenaltyResult(home_score=5, away_score=6)
    assert result.winner_side == "away"


def test_penalty_shootout_never_ties():
    rng = np.random.default_rng(11)
    for _ in range(500):
        result = penalty_shootout(70, 72, rng)
        assert result.home_score != result.away_score


def test_knockout_draw_goes_to_penalties(monkeypatch, config):
    monkeypatch.setattr(engine, "generate_goals", lambda e, rng=None: 1)
    result = simulate_knockout_match(75, 75, config, rng=np.random.default_rng(0))
    assert result.is_draw
    assert result.penalties is not None
    assert result.penalties.home_score != result.penalties.away_score


def test_knockout_decisive_match_has_no_penalties(monkeypatch, config):
    goals = iter([2, 0])
    monkeypatch.setattr(engine, "generate_goals", lambda e, rng=None: next(goals))
    result = simulate_knockout_match(75, 75, config)
    assert result.outcome == "home"
    assert result.penalties is None


def test_higher_k_factor_gives_larger_swings():
    small = EngineConfig(k_factor=1)
    large = EngineConfig(k_factor=50)
    assert abs(update_ratings(60, 80, 1, 0, small.k_factor).home_change) <= abs(
        update_ratings(60, 80, 1, 0, large.k_factor).home_change
    )


def test_home_win_with_home_advantage(monkeypatch, config):
    goals = iter([2, 1])
    monkeypatch.setattr(engine, "generate_goals", lambda e, rng=None: next(goals))
    result = simulate_match(85, 70, config)
    assert (result.home_score, result.away_score) == (2, 1)
    # deltas use the pre-match ratings; 88 vs 70 would round to 2 as well
    assert result.home_skill_change == 2
    assert result.away_skill_change == -2


def test_knockout_match_takes_home_advantage_off_site(monkeypatch, config):
    seen = []
    monkeypatch.setattr(engine, "generate_goals", lambda e, rng=None: seen.append(e) or len(seen) % 2)
    simulate_knockout_match(70, 70, config, False, np.random.default_rng(0))
    assert seen[0] == pytest.approx(1.56)
