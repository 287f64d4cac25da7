from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from worldcup_sim.fixtures import WORLD_CUP_KNOCKOUT, Group, Match, rank_group


ROUND_OF_32 = "round-of-32"
ROUND_OF_16 = "round-of-16"
QUARTER_FINAL = "quarter-final"
SEMI_FINAL = "semi-final"
THIRD_PLACE = "third-place"
FINAL = "final"

KNOCKOUT_ROUNDS = (ROUND_OF_32, ROUND_OF_16, QUARTER_FINAL, SEMI_FINAL, THIRD_PLACE, FINAL)

# (earlier-round position, earlier-round position) -> next-round position
ROUND_OF_16_PAIRINGS = [(i, i + 8) for i in range(8)]
QUARTER_FINAL_PAIRINGS = [(0, 4), (2, 6), (1, 5), (3, 7)]
SEMI_FINAL_PAIRINGS = [(0, 1), (2, 3)]


@dataclass
class KnockoutBracket:
    round_of_32: List[Match] = field(default_factory=list)
    round_of_16: List[Match] = field(default_factory=list)
    quarter_finals: List[Match] = field(default_factory=list)
    semi_finals: List[Match] = field(default_factory=list)
    third_place: Optional[Match] = None
    final: Optional[Match] = None

    def round_matches(self, round_name: str) -> List[Match]:
        if round_name == ROUND_OF_32:
            return self.round_of_32
        if round_name == ROUND_OF_16:
            return self.round_of_16
        if round_name == QUARTER_FINAL:
            return self.quarter_finals
        if round_name == SEMI_FINAL:
            return self.semi_finals
        if round_name == THIRD_PLACE:
            return [self.third_place] if self.third_place else []
        if round_name == FINAL:
            return [self.final] if self.final else []
        raise ValueError(f"Unknown knockout round: {round_name}")

    def all_matches(self) -> List[Match]:
        return [m for r in KNOCKOUT_ROUNDS for m in self.round_matches(r)]

    @classmethod
    def from_matches(cls, matches: Iterable[Match]) -> "KnockoutBracket":
        bracket = cls()
        for m in matches:
            if m.round == ROUND_OF_32:
                bracket.round_of_32.append(m)
            elif m.round == ROUND_OF_16:
                bracket.round_of_16.append(m)
            elif m.round == QUARTER_FINAL:
                bracket.quarter_finals.append(m)
            elif m.round == SEMI_FINAL:
                bracket.semi_finals.append(m)
            elif m.round == THIRD_PLACE:
                bracket.third_place = m
            elif m.round == FINAL:
                bracket.final = m
            else:
                raise ValueError(f"Match has no knockout round: {m.round!r}")
        return bracket


def _knockout_match(home: str, away: str, round_name: str, position: Optional[int] = None) -> Match:
    return Match(
        home_team=home,
        away_team=away,
        stage=WORLD_CUP_KNOCKOUT,
        round=round_name,
        position=position,
    )


def _winners_and_runners_up(groups: Sequence[Group]) -> List[Tuple[str, str]]:
    ordered = sorted(groups, key=lambda g: g.name)
    out = []
    for g in ordered:
        ranking = rank_group(g)
        if len(ranking) < 2:
            raise ValueError(f"{g.name} needs at least two teams to seed the knockout")
        out.append((ranking[0], ranking[1]))
    return out


def _cross_group_pairings(groups: Sequence[Group], round_name: str) -> List[Match]:
    """Group winners meet the runner-up of the neighbouring group: A1-B2, C1-D2, ..., B1-A2."""
    results = _winners_and_runners_up(groups)
    half = len(results) // 2
    matches = []
    for i in range(half):
        a, b = results[2 * i], results[2 * i + 1]
        matches.append(_knockout_match(a[0], b[1], round_name, position=i))
    for i in range(half):
        a, b = results[2 * i], results[2 * i + 1]
        matches.append(_knockout_match(b[0], a[1], round_name, position=half + i))
    return matches


def generate_round_of_32(groups: Sequence[Group]) -> List[Match]:
    if len(groups) != 16:
        raise ValueError(f"Round of 32 needs 16 groups, got {len(groups)}")
    return _cross_group_pairings(groups, ROUND_OF_32)


def generate_round_of_16_from_groups(groups: Sequence[Group]) -> List[Match]:
    if len(groups) != 8:
        raise ValueError(f"Round of 16 from groups needs 8 groups, got {len(groups)}")
    return _cross_group_pairings(groups, ROUND_OF_16)


def _by_position(matches: Iterable[Match]) -> Dict[int, Match]:
    return {m.position: m for m in matches if m.position is not None}


def _pair_winners(
    previous: Iterable[Match], pairings: List[Tuple[int, int]], round_name: str
) -> List[Match]:
    lookup = _by_position(previous)
    matches = []
    for position, (p1, p2) in enumerate(pairings):
        m1 = lookup.get(p1)
        m2 = lookup.get(p2)
        if m1 is None or m2 is None or not m1.winner or not m2.winner:
            continue
        matches.append(_knockout_match(m1.winner, m2.winner, round_name, position=position))
    return matches


def generate_round_of_16(round_of_32: Iterable[Match]) -> List[Match]:
    return _pair_winners(round_of_32, ROUND_OF_16_PAIRINGS, ROUND_OF_16)


def generate_quarter_finals(round_of_16: Iterable[Match]) -> List[Match]:
    return _pair_winners(round_of_16, QUARTER_FINAL_PAIRINGS, QUARTER_FINAL)


def generate_semi_finals(quarter_finals: Iterable[Match]) -> List[Match]:
    return _pair_winners(quarter_finals, SEMI_FINAL_PAIRINGS, SEMI_FINAL)


def generate_third_place_match(semi_finals: Iterable[Match]) -> Optional[Match]:
    losers = [m.loser for m in semi_finals if m.loser]
    if len(losers) != 2:
        return None
    return _knockout_match(losers[0], losers[1], THIRD_PLACE)


def generate_final(semi_finals: Iterable[Match]) -> Optional[Match]:
    winners = [m.winner for m in semi_finals if m.winner]
    if len(winners) != 2:
        return None
    return _knockout_match(winners[0], winners[1], FINAL)


def determine_knockout_winner(match: Match) -> Optional[Tuple[str, str]]:
    """(winner, loser) by score, then penalties; None while undecided."""
    if not match.is_played or match.home_score is None or match.away_score is None:
        return None
    if match.home_score > match.away_score:
        return match.home_team, match.away_team
    if match.away_score > match.home_score:
        return match.away_team, match.home_team
    if match.penalties is None:
        return None
    if match.penalties.home_score > match.penalties.away_score:
        return match.home_team, match.away_team
    return match.away_team, match.home_team


def is_round_complete(matches: Sequence[Match]) -> bool:
    return len(matches) > 0 and all(m.is_played and m.winner for m in matches)
