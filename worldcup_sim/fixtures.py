from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from worldcup_sim.engine import MatchResult, PenaltyResult


QUALIFIER = "qualifier"
WORLD_CUP_GROUP = "world-cup-group"
WORLD_CUP_KNOCKOUT = "world-cup-knockout"

POT_LETTERS = "ABCDE"

# 5-team double round robin: (matchday, home pot, away pot)
FIXTURE_TEMPLATE: List[Tuple[int, str, str]] = [
    (1, "B", "E"),
    (2, "D", "A"),
    (3, "A", "C"),
    (4, "E", "D"),
    (5, "B", "A"),
    (6, "C", "D"),
    (7, "C", "E"),
    (8, "D", "B"),
    (9, "B", "C"),
    (10, "E", "A"),
    (11, "E", "B"),
    (12, "A", "D"),
    (13, "C", "A"),
    (14, "D", "E"),
    (15, "A", "B"),
    (16, "D", "C"),
    (17, "E", "C"),
    (18, "B", "D"),
    (19, "C", "B"),
    (20, "A", "E"),
]

TABLE_COLUMNS = ["played", "w", "d", "l", "gf", "ga", "gd", "points"]


@dataclass
class Match:
    home_team: str
    away_team: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    is_played: bool = False
    stage: Optional[str] = None
    matchday: Optional[int] = None
    round: Optional[str] = None
    position: Optional[int] = None
    group: Optional[str] = None
    penalties: Optional[PenaltyResult] = None
    winner: Optional[str] = None
    loser: Optional[str] = None

    def record(self, result: MatchResult) -> "Match":
        if self.is_played:
            raise ValueError(f"{self.home_team} vs {self.away_team} has already been played")
        self.home_score = result.home_score
        self.away_score = result.away_score
        self.penalties = result.penalties
        self.is_played = True
        return self


@dataclass
class Group:
    name: str
    teams: List[str]
    matches: List[Match] = field(default_factory=list)
    region: Optional[str] = None

    @property
    def played_matches(self) -> int:
        return sum(1 for m in self.matches if m.is_played)

    @property
    def is_complete(self) -> bool:
        return len(self.matches) > 0 and self.played_matches == len(self.matches)

    def matchdays(self) -> List[int]:
        return sorted({m.matchday for m in self.matches if m.matchday is not None})


def _circle_rounds(teams: Sequence[str]) -> List[List[Tuple[str, str]]]:
    """Single round robin by the circle method; a bye slot pads odd counts."""
    slots: List[Optional[str]] = list(teams)
    if len(slots) % 2 == 1:
        slots.append(None)
    n = len(slots)
    rounds = []
    for r in range(n - 1):
        pairs = []
        for i in range(n // 2):
            a, b = slots[i], slots[n - 1 - i]
            if a is None or b is None:
                continue
            # alternate who hosts the fixed slot so home games spread out
            if i == 0 and r % 2 == 1:
                a, b = b, a
            pairs.append((a, b))
        rounds.append(pairs)
        slots = [slots[0], slots[-1]] + slots[1:-1]
    return rounds


def generate_round_robin_matches(teams: Sequence[str], stage: str = QUALIFIER) -> List[Match]:
    """
    Every team hosts every other team once.

    A 5-team group is laid out with FIXTURE_TEMPLATE, reading the team order
    as pot letters A-E. Other sizes use the circle method with the second leg
    mirrored after the first.
    """
    teams = list(teams)
    if len(set(teams)) != len(teams):
        raise ValueError("round robin requires distinct teams")
    if len(teams) == len(POT_LETTERS):
        by_letter = dict(zip(POT_LETTERS, teams))
        return [
            Match(
                home_team=by_letter[home],
                away_team=by_letter[away],
                stage=stage,
                matchday=matchday,
            )
            for matchday, home, away in FIXTURE_TEMPLATE
        ]

    first_leg = _circle_rounds(teams)
    matches = []
    for day, pairs in enumerate(first_leg, start=1):
        for home, away in pairs:
            matches.append(Match(home_team=home, away_team=away, stage=stage, matchday=day))
    offset = len(first_leg)
    for day, pairs in enumerate(first_leg, start=1):
        for home, away in pairs:
            matches.append(
                Match(home_team=away, away_team=home, stage=stage, matchday=offset + day)
            )
    return matches


def generate_world_cup_group_matches(teams: Sequence[str]) -> List[Match]:
    teams = list(teams)
    if len(set(teams)) != len(teams):
        raise ValueError("group requires distinct teams")
    matches = []
    for day, pairs in enumerate(_circle_rounds(teams), start=1):
        for home, away in pairs:
            matches.append(
                Match(home_team=home, away_team=away, stage=WORLD_CUP_GROUP, matchday=day)
            )
    return matches


def group_names(count: int, prefix: str = "Group ") -> List[str]:
    return [f"{prefix}{chr(ord('A') + i)}" for i in range(count)]


def create_groups(
    seeded_teams: Sequence[str],
    group_size: int,
    prefix: str = "Group ",
    region: Optional[str] = None,
    rng: Optional[np.random.Generator] = None,
) -> List[Group]:
    """
    Split teams (strongest first) into pots of one team per group and deal
    each pot across the groups, shuffling within a pot when an rng is given.
    """
    if group_size <= 0:
        raise ValueError("group_size must be positive")
    teams = list(seeded_teams)
    if not teams:
        return []
    group_count = -(-len(teams) // group_size)
    groups = [Group(name=name, teams=[], region=region) for name in group_names(group_count, prefix)]
    for start in range(0, len(teams), group_count):
        pot = teams[start : start + group_count]
        if rng is not None:
            rng.shuffle(pot)
        for group, team in zip(groups, pot):
            group.teams.append(team)
    return groups


def _empty_table(teams: Iterable[str]) -> pd.DataFrame:
    return pd.DataFrame(index=list(teams), columns=TABLE_COLUMNS, data=0)


def group_table(group: Group) -> pd.DataFrame:
    table = _empty_table(group.teams)
    for m in group.matches:
        if not m.is_played or m.home_score is None or m.away_score is None:
            continue
        home, away = m.home_team, m.away_team
        if home not in table.index or away not in table.index:
            continue
        hs, as_ = m.home_score, m.away_score
        table.loc[home, "played"] += 1
        table.loc[away, "played"] += 1
        table.loc[home, "gf"] += hs
        table.loc[home, "ga"] += as_
        table.loc[away, "gf"] += as_
        table.loc[away, "ga"] += hs
        if hs > as_:
            table.loc[home, "points"] += 3
            table.loc[home, "w"] += 1
            table.loc[away, "l"] += 1
        elif hs < as_:
            table.loc[away, "points"] += 3
            table.loc[away, "w"] += 1
            table.loc[home, "l"] += 1
        else:
            table.loc[home, "points"] += 1
            table.loc[away, "points"] += 1
            table.loc[home, "d"] += 1
            table.loc[away, "d"] += 1
    table["gd"] = table["gf"] - table["ga"]
    table["team"] = table.index
    table = table.sort_values(
        by=["points", "gd", "gf", "team"], ascending=[False, False, False, True]
    )
    return table.drop(columns="team")


def rank_group(group: Group) -> List[str]:
    return group_table(group).index.tolist()


def qualified_teams(groups: Iterable[Group], per_group: int = 2) -> List[str]:
    qualified: List[str] = []
    for group in groups:
        qualified.extend(rank_group(group)[:per_group])
    return qualified


def matches_frame(groups: Iterable[Group]) -> pd.DataFrame:
    rows: List[Dict] = []
    for group in groups:
        for m in group.matches:
            rows.append(
                {
                    "group": group.name,
                    "region": group.region,
                    "matchday": m.matchday,
                    "home_team": m.home_team,
                    "away_team": m.away_team,
                    "home_score": m.home_score,
                    "away_score": m.away_score,
                    "is_played": m.is_played,
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "group",
            "region",
            "matchday",
            "home_team",
            "away_team",
            "home_score",
            "away_score",
            "is_played",
        ],
    )
