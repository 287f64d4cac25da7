from dataclasses import dataclass
from typing import Iterable, List, Mapping, Sequence, Union

import pandas as pd

from worldcup_sim.engine import round_half_up
from worldcup_sim.fixtures import Group, Match
from worldcup_sim.knockout import (
    FINAL,
    QUARTER_FINAL,
    ROUND_OF_16,
    ROUND_OF_32,
    SEMI_FINAL,
    THIRD_PLACE,
    KnockoutBracket,
)


COMPLETE = "complete"

# share of the knockout stage carried by each round, in percent
KNOCKOUT_WEIGHTS = {
    ROUND_OF_32: 25.0,
    ROUND_OF_16: 20.0,
    QUARTER_FINAL: 15.0,
    SEMI_FINAL: 15.0,
    THIRD_PLACE: 10.0,
    FINAL: 15.0,
}

# rounds a bracket moves through; the third-place match sits outside the chain
ROUND_PROGRESSION = (ROUND_OF_32, ROUND_OF_16, QUARTER_FINAL, SEMI_FINAL, FINAL)


@dataclass(frozen=True)
class StageProgress:
    total_groups: int
    completed_groups: int
    total_matches: int
    played_matches: int
    percentage: int
    is_complete: bool


@dataclass(frozen=True)
class KnockoutProgress:
    current_round: str
    round_of_32_complete: bool
    round_of_16_complete: bool
    quarter_finals_complete: bool
    semi_finals_complete: bool
    third_place_complete: bool
    final_complete: bool
    percentage: int
    is_complete: bool


def percentage_played(played: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100.0 * played / total)


def group_stage_progress(groups: Iterable[Group]) -> StageProgress:
    groups = list(groups)
    total_matches = 0
    played_matches = 0
    completed_groups = 0
    for group in groups:
        group_total = len(group.matches)
        group_played = sum(1 for m in group.matches if m.is_played)
        total_matches += group_total
        played_matches += group_played
        if group_total > 0 and group_played == group_total:
            completed_groups += 1

    total_groups = len(groups)
    return StageProgress(
        total_groups=total_groups,
        completed_groups=completed_groups,
        total_matches=total_matches,
        played_matches=played_matches,
        percentage=percentage_played(played_matches, total_matches),
        is_complete=total_groups > 0 and completed_groups == total_groups,
    )


def qualifier_progress(
    qualifiers: Union[Mapping[str, Sequence[Group]], Iterable[Group]]
) -> StageProgress:
    """Progress across every qualifier group, given per region or as one flat list."""
    if isinstance(qualifiers, Mapping):
        groups: List[Group] = [g for region_groups in qualifiers.values() for g in region_groups]
    else:
        groups = list(qualifiers)
    return group_stage_progress(groups)


def world_cup_group_progress(groups: Iterable[Group]) -> StageProgress:
    return group_stage_progress(groups)


def _all_played(matches: Sequence[Match]) -> bool:
    return len(matches) > 0 and all(m.is_played for m in matches)


def _round_share(matches: Sequence[Match], weight: float) -> float:
    if not matches:
        return 0.0
    played = sum(1 for m in matches if m.is_played)
    return weight * played / len(matches)


def knockout_progress(bracket: KnockoutBracket) -> KnockoutProgress:
    complete = {
        ROUND_OF_32: _all_played(bracket.round_of_32),
        ROUND_OF_16: _all_played(bracket.round_of_16),
        QUARTER_FINAL: _all_played(bracket.quarter_finals),
        SEMI_FINAL: _all_played(bracket.semi_finals),
        THIRD_PLACE: bracket.third_place is not None and bracket.third_place.is_played,
        FINAL: bracket.final is not None and bracket.final.is_played,
    }

    current_round = ROUND_OF_32
    for idx in reversed(range(len(ROUND_PROGRESSION))):
        if complete[ROUND_PROGRESSION[idx]]:
            following = ROUND_PROGRESSION[idx + 1 : idx + 2]
            current_round = following[0] if following else COMPLETE
            break

    share = sum(
        _round_share(bracket.round_matches(r), w) for r, w in KNOCKOUT_WEIGHTS.items()
    )

    third_place_done = bracket.third_place is None or complete[THIRD_PLACE]
    return KnockoutProgress(
        current_round=current_round,
        round_of_32_complete=complete[ROUND_OF_32],
        round_of_16_complete=complete[ROUND_OF_16],
        quarter_finals_complete=complete[QUARTER_FINAL],
        semi_finals_complete=complete[SEMI_FINAL],
        third_place_complete=complete[THIRD_PLACE],
        final_complete=complete[FINAL],
        percentage=round_half_up(share),
        is_complete=complete[FINAL] and third_place_done,
    )


def progress_frame(groups: Iterable[Group]) -> pd.DataFrame:
    rows = []
    for group in groups:
        total = len(group.matches)
        played = group.played_matches
        rows.append(
            {
                "group": group.name,
                "region": group.region,
                "total_matches": total,
                "played_matches": played,
                "percentage": percentage_played(played, total),
                "is_complete": group.is_complete,
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "group",
            "region",
            "total_matches",
            "played_matches",
            "percentage",
            "is_complete",
        ],
    )
