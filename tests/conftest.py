import pytest

from worldcup_sim.config import EngineConfig
from worldcup_sim.fixtures import Group, Match, generate_world_cup_group_matches


class ScriptedRng:
    """Stands in for np.random.Generator with a fixed sequence of draws."""

    def __init__(self, randoms=(), integers=()):
        self._randoms = list(randoms)
        self._integers = list(integers)

    def random(self):
        return self._randoms.pop(0)

    def integers(self, low, high=None):
        return self._integers.pop(0)

    def shuffle(self, x):
        pass


def decided_group(name, teams):
    """World Cup group played out so the listed order is the final table."""
    group = Group(name=name, teams=list(teams), matches=generate_world_cup_group_matches(teams))
    rank = {t: i for i, t in enumerate(teams)}
    for m in group.matches:
        m.is_played = True
        if rank[m.home_team] < rank[m.away_team]:
            m.home_score, m.away_score = 1, 0
        else:
            m.home_score, m.away_score = 0, 1
    return group


def group_with(played, total, name="G"):
    matches = [Match(home_team=f"h{i}", away_team=f"a{i}") for i in range(total)]
    for m in matches[:played]:
        m.is_played = True
        m.home_score, m.away_score = 1, 1
    return Group(name=name, teams=[], matches=matches)


@pytest.fixture
def config():
    return EngineConfig(k_factor=5, home_advantage=3, skill_min=30, skill_max=100)


@pytest.fixture
def scripted_rng():
    return ScriptedRng
