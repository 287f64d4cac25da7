from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from worldcup_sim.config import ConfigStore, EngineConfig
from worldcup_sim.engine import (
    MatchResult,
    clamp_rating,
    simulate_knockout_match,
    simulate_match,
)
from worldcup_sim.fixtures import (
    QUALIFIER,
    WORLD_CUP_KNOCKOUT,
    Group,
    Match,
    create_groups,
    generate_round_robin_matches,
    generate_world_cup_group_matches,
    group_names,
    qualified_teams,
)
from worldcup_sim.knockout import (
    FINAL,
    KNOCKOUT_ROUNDS,
    QUARTER_FINAL,
    ROUND_OF_16,
    ROUND_OF_32,
    SEMI_FINAL,
    THIRD_PLACE,
    KnockoutBracket,
    determine_knockout_winner,
    generate_final,
    generate_quarter_finals,
    generate_round_of_16,
    generate_round_of_16_from_groups,
    generate_round_of_32,
    generate_semi_finals,
    generate_third_place_match,
    is_round_complete,
)
from worldcup_sim.progress import (
    KnockoutProgress,
    StageProgress,
    knockout_progress,
    qualifier_progress,
    world_cup_group_progress,
)
from worldcup_sim.stages import StageState, can_advance_to_knockout, can_advance_to_world_cup
from worldcup_sim.teams import REGIONS, calculate_tier


logger = logging.getLogger(__name__)

QUALIFIER_GROUP_SIZE = 5
QUALIFIERS_PER_GROUP = 2
WORLD_CUP_GROUP_SIZE = 4

ELIMINATION_LABELS = {
    QUALIFIER: "0. Qualifiers",
    "world-cup-group": "1. Group",
    ROUND_OF_32: "2. Round of 32",
    ROUND_OF_16: "3. Round of 16",
    QUARTER_FINAL: "4. Quarter-final",
    "fourth-place": "5. Fourth place",
    THIRD_PLACE: "6. Third place",
    FINAL: "7. Final",
    "champion": "8. Champion",
}


@dataclass
class PlayedMatch:
    stage: str
    home_team: str
    away_team: str
    home_score: int
    away_score: int
    is_neutral: bool
    home_skill_before: int
    away_skill_before: int
    home_skill_after: int
    away_skill_after: int
    home_skill_change: int
    away_skill_change: int
    group: Optional[str] = None
    matchday: Optional[int] = None
    round: Optional[str] = None
    home_penalties: Optional[int] = None
    away_penalties: Optional[int] = None
    winner: Optional[str] = None


class Tournament:
    """
    One run of qualifiers -> World Cup groups -> knockout over a pool of rated teams.

    Ratings move after every match and carry from stage to stage. The engine
    configuration is read from the store at each match, so settings changed
    mid-tournament apply from the next match on.
    """

    def __init__(
        self,
        name: str,
        ratings: Mapping[str, int],
        regions: Mapping[str, str],
        config_store: Optional[ConfigStore] = None,
        year: Optional[int] = None,
    ):
        missing = sorted(set(ratings).difference(regions))
        if missing:
            raise ValueError(f"Teams without a region: {missing[:10]}")
        unknown = sorted({regions[t] for t in ratings}.difference(REGIONS))
        if unknown:
            raise ValueError(f"Unknown regions: {unknown}")

        self.name = name
        self.year = year
        self.config_store = config_store or ConfigStore()
        config = self.config_store.config
        self.ratings: Dict[str, int] = {
            t: clamp_rating(int(s), 0, config.skill_min, config.skill_max)
            for t, s in ratings.items()
        }
        self.original_ratings: Dict[str, int] = dict(self.ratings)
        self.regions: Dict[str, str] = {t: regions[t] for t in ratings}

        self.qualifiers: Dict[str, List[Group]] = {r: [] for r in REGIONS}
        self.world_cup_groups: List[Group] = []
        self.knockout: Optional[KnockoutBracket] = None
        self.qualified: List[str] = []
        self.state = StageState.NOT_STARTED
        self.history: List[PlayedMatch] = []

        self.champion: Optional[str] = None
        self.runner_up: Optional[str] = None
        self.third_place: Optional[str] = None
        self.fourth_place: Optional[str] = None

    @classmethod
    def from_frame(
        cls,
        teams: pd.DataFrame,
        name: str = "World Cup",
        config_store: Optional[ConfigStore] = None,
        year: Optional[int] = None,
    ) -> "Tournament":
        needed = {"region", "skill"}
        missing = needed.difference(teams.columns)
        if missing:
            raise ValueError(f"teams is missing required columns: {sorted(missing)}")
        return cls(
            name=name,
            ratings=teams["skill"].astype(int).to_dict(),
            regions=teams["region"].to_dict(),
            config_store=config_store,
            year=year,
        )

    @property
    def config(self) -> EngineConfig:
        return self.config_store.config

    # ------------------------------------------------------------------ #
    # full run

    def simulate(self, random_state: Optional[int] = None) -> "Tournament":
        rng = np.random.default_rng(random_state)
        if not self.qualifier_groups():
            self.draw_qualifiers(rng)

        groups = self.qualifier_groups()
        for matchday in sorted({d for g in groups for d in g.matchdays()}):
            self.simulate_matchday(groups, matchday, rng)
        if self.state in (StageState.NOT_STARTED, StageState.QUALIFIERS_COMPLETE):
            if not self.advance_to_world_cup(rng):
                raise ValueError("Qualifiers did not produce a World Cup")

        for group in self.world_cup_groups:
            self.simulate_group(group, rng)
        if self.state is StageState.WORLD_CUP_ACTIVE:
            if not self.advance_to_knockout():
                raise ValueError("World Cup groups did not produce a knockout bracket")

        while self.state is StageState.KNOCKOUT_ACTIVE:
            pending = self.pending_knockout_matches()
            if not pending:
                raise ValueError("Knockout bracket stalled with no playable matches")
            for match in pending:
                self.simulate_knockout_match(match, rng)
        return self

    # ------------------------------------------------------------------ #
    # qualifiers

    def qualifier_groups(self) -> List[Group]:
        return [g for r in REGIONS for g in self.qualifiers[r]]

    def draw_qualifiers(self, rng: Optional[np.random.Generator] = None) -> Dict[str, List[Group]]:
        if any(m.is_played for g in self.qualifier_groups() for m in g.matches):
            raise ValueError("Cannot redraw qualifiers after matches have been played")
        rng = rng if rng is not None else np.random.default_rng()

        # a fresh draw starts from the ratings the tournament began with
        self.ratings = dict(self.original_ratings)
        for region in REGIONS:
            seeded = sorted(
                (t for t, r in self.regions.items() if r == region),
                key=lambda t: (-self.ratings[t], t),
            )
            groups = create_groups(
                seeded,
                QUALIFIER_GROUP_SIZE,
                prefix=f"{region} Group ",
                region=region,
                rng=rng,
            )
            for group in groups:
                group.matches = generate_round_robin_matches(group.teams, stage=QUALIFIER)
                for m in group.matches:
                    m.group = group.name
            self.qualifiers[region] = groups
            logger.debug("drew %d qualifier groups for %s", len(groups), region)
        self.state = StageState.NOT_STARTED
        return self.qualifiers

    # ------------------------------------------------------------------ #
    # match play

    def _play(
        self,
        match: Match,
        rng: Optional[np.random.Generator],
        knockout: bool,
    ) -> MatchResult:
        if match.is_played:
            raise ValueError(f"{match.home_team} vs {match.away_team} has already been played")
        config = self.config
        home_skill = self.ratings[match.home_team]
        away_skill = self.ratings[match.away_team]
        neutral = match.stage != QUALIFIER

        if knockout:
            result = simulate_knockout_match(home_skill, away_skill, config, rng=rng)
        else:
            result = simulate_match(home_skill, away_skill, config, neutral_site=neutral, rng=rng)
        match.record(result)

        home_after = clamp_rating(
            home_skill, result.home_skill_change, config.skill_min, config.skill_max
        )
        away_after = clamp_rating(
            away_skill, result.away_skill_change, config.skill_min, config.skill_max
        )
        self.ratings[match.home_team] = home_after
        self.ratings[match.away_team] = away_after

        if knockout:
            decided = determine_knockout_winner(match)
            if decided is not None:
                match.winner, match.loser = decided
        elif result.outcome == "home":
            match.winner, match.loser = match.home_team, match.away_team
        elif result.outcome == "away":
            match.winner, match.loser = match.away_team, match.home_team

        pens = result.penalties
        self.history.append(
            PlayedMatch(
                stage=match.stage or "",
                home_team=match.home_team,
                away_team=match.away_team,
                home_score=result.home_score,
                away_score=result.away_score,
                is_neutral=neutral,
                home_skill_before=home_skill,
                away_skill_before=away_skill,
                home_skill_after=home_after,
                away_skill_after=away_after,
                home_skill_change=result.home_skill_change,
                away_skill_change=result.away_skill_change,
                group=match.group,
                matchday=match.matchday,
                round=match.round,
                home_penalties=pens.home_score if pens else None,
                away_penalties=pens.away_score if pens else None,
                winner=match.winner,
            )
        )
        logger.debug(
            "%s %s %d-%d %s%s",
            match.round or match.group,
            match.home_team,
            result.home_score,
            result.away_score,
            match.away_team,
            f" ({pens.home_score}-{pens.away_score} pens)" if pens else "",
        )
        return result

    def simulate_match(self, match: Match, rng: Optional[np.random.Generator] = None) -> MatchResult:
        if match.stage == WORLD_CUP_KNOCKOUT:
            raise ValueError(
                f"{match.home_team} vs {match.away_team} is a knockout match; use simulate_knockout_match"
            )
        result = self._play(match, rng, knockout=False)
        self._refresh_group_state()
        return result

    def simulate_group(
        self, group: Group, rng: Optional[np.random.Generator] = None
    ) -> List[MatchResult]:
        # one at a time, so each match reads the ratings the previous one left
        pending = sorted(
            (m for m in group.matches if not m.is_played),
            key=lambda m: m.matchday or 0,
        )
        return [self.simulate_match(m, rng) for m in pending]

    def simulate_matchday(
        self,
        groups: Iterable[Group],
        matchday: int,
        rng: Optional[np.random.Generator] = None,
    ) -> List[MatchResult]:
        results = []
        for group in groups:
            for m in group.matches:
                if not m.is_played and (m.matchday or 0) == matchday:
                    results.append(self.simulate_match(m, rng))
        return results

    def _refresh_group_state(self) -> None:
        if self.state is StageState.NOT_STARTED and qualifier_progress(self.qualifiers).is_complete:
            self.state = StageState.QUALIFIERS_COMPLETE
            logger.info("%s: qualifiers complete", self.name)

    # ------------------------------------------------------------------ #
    # world cup

    def advance_to_world_cup(self, rng: Optional[np.random.Generator] = None) -> bool:
        if not can_advance_to_world_cup(self.qualifiers, self.state):
            logger.warning("%s: cannot advance to the World Cup from %s", self.name, self.state.value)
            return False
        rng = rng if rng is not None else np.random.default_rng()
        self.qualified = qualified_teams(self.qualifier_groups(), QUALIFIERS_PER_GROUP)
        self.world_cup_groups = self._draw_world_cup(self.qualified, rng)
        self.knockout = KnockoutBracket()
        self.state = StageState.WORLD_CUP_ACTIVE
        logger.info(
            "%s: %d teams drawn into %d World Cup groups",
            self.name,
            len(self.qualified),
            len(self.world_cup_groups),
        )
        return True

    def _draw_world_cup(self, teams: List[str], rng: np.random.Generator) -> List[Group]:
        if not teams or len(teams) % WORLD_CUP_GROUP_SIZE != 0:
            raise ValueError(
                f"World Cup draw needs a multiple of {WORLD_CUP_GROUP_SIZE} teams, got {len(teams)}"
            )
        group_count = len(teams) // WORLD_CUP_GROUP_SIZE
        strength_order = sorted(teams, key=lambda t: (-self.ratings[t], t))
        pots = [
            strength_order[i * group_count : (i + 1) * group_count]
            for i in range(WORLD_CUP_GROUP_SIZE)
        ]

        groups = [Group(name=name, teams=[]) for name in group_names(group_count)]
        for pot_idx, pot in enumerate(pots):
            pot = list(pot)
            rng.shuffle(pot)
            # snake order keeps the group strengths level
            order = range(group_count) if pot_idx % 2 == 0 else reversed(range(group_count))
            for g_idx, team in zip(order, pot):
                groups[g_idx].teams.append(team)

        for group in groups:
            group.matches = generate_world_cup_group_matches(group.teams)
            for m in group.matches:
                m.group = group.name
        return groups

    def advance_to_knockout(self) -> bool:
        if not can_advance_to_knockout(self.world_cup_groups, self.state):
            logger.warning("%s: cannot advance to the knockout from %s", self.name, self.state.value)
            return False
        bracket = self.knockout or KnockoutBracket()
        if len(self.world_cup_groups) == 16:
            bracket.round_of_32 = generate_round_of_32(self.world_cup_groups)
        elif len(self.world_cup_groups) == 8:
            bracket.round_of_16 = generate_round_of_16_from_groups(self.world_cup_groups)
        else:
            raise ValueError(
                f"Knockout needs 8 or 16 World Cup groups, got {len(self.world_cup_groups)}"
            )
        self.knockout = bracket
        self.state = StageState.KNOCKOUT_ACTIVE
        logger.info("%s: knockout bracket created", self.name)
        return True

    # ------------------------------------------------------------------ #
    # knockout

    def pending_knockout_matches(self) -> List[Match]:
        if self.knockout is None:
            return []
        for round_name in KNOCKOUT_ROUNDS:
            pending = [m for m in self.knockout.round_matches(round_name) if not m.is_played]
            if pending:
                return pending
        return []

    def simulate_knockout_match(
        self, match: Match, rng: Optional[np.random.Generator] = None
    ) -> MatchResult:
        if self.state is not StageState.KNOCKOUT_ACTIVE:
            raise ValueError(f"No knockout in progress ({self.state.value})")
        if match.stage != WORLD_CUP_KNOCKOUT:
            raise ValueError(f"{match.home_team} vs {match.away_team} is not a knockout match")
        result = self._play(match, rng, knockout=True)
        self._advance_bracket()
        return result

    def _advance_bracket(self) -> None:
        b = self.knockout
        if b is None:
            return
        if is_round_complete(b.round_of_32) and not b.round_of_16:
            b.round_of_16 = generate_round_of_16(b.round_of_32)
        if is_round_complete(b.round_of_16) and not b.quarter_finals:
            b.quarter_finals = generate_quarter_finals(b.round_of_16)
        if is_round_complete(b.quarter_finals) and not b.semi_finals:
            b.semi_finals = generate_semi_finals(b.quarter_finals)
        if is_round_complete(b.semi_finals):
            if b.third_place is None:
                b.third_place = generate_third_place_match(b.semi_finals)
            if b.final is None:
                b.final = generate_final(b.semi_finals)
        if knockout_progress(b).is_complete:
            self._finish()

    def _finish(self) -> None:
        b = self.knockout
        self.champion = b.final.winner
        self.runner_up = b.final.loser
        if b.third_place is not None:
            self.third_place = b.third_place.winner
            self.fourth_place = b.third_place.loser
        self.state = StageState.FINISHED
        logger.info("%s: %s are champions", self.name, self.champion)

    # ------------------------------------------------------------------ #
    # reporting

    def qualifier_progress(self) -> StageProgress:
        return qualifier_progress(self.qualifiers)

    def world_cup_progress(self) -> StageProgress:
        return world_cup_group_progress(self.world_cup_groups)

    def knockout_progress(self) -> KnockoutProgress:
        return knockout_progress(self.knockout or KnockoutBracket())

    def results_frame(self) -> pd.DataFrame:
        return pd.DataFrame([vars(m) for m in self.history])

    def ratings_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "region": pd.Series(self.regions),
                "skill_start": pd.Series(self.original_ratings),
                "skill": pd.Series(self.ratings),
            }
        )
        df["skill_change"] = df["skill"] - df["skill_start"]
        df["tier"] = df["skill"].apply(calculate_tier)
        df.index.name = "team"
        return df.sort_values(["skill", "skill_change"], ascending=[False, False])

    def stage_of_elimination(self) -> Dict[str, str]:
        res = self.results_frame()
        if res.empty:
            return {}
        stages: Dict[str, str] = {}
        for team in self.ratings:
            team_res = res[(res["home_team"] == team) | (res["away_team"] == team)]
            if team_res.empty:
                continue
            last = team_res.iloc[-1]
            key = last["round"] if isinstance(last["round"], str) else last["stage"]
            if key == FINAL and self.champion == team:
                key = "champion"
            elif key == THIRD_PLACE and self.fourth_place == team:
                key = "fourth-place"
            stages[team] = ELIMINATION_LABELS.get(key, f"0. {key}")
        return stages
