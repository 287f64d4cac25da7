from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence, Union

from worldcup_sim.fixtures import Group
from worldcup_sim.knockout import KnockoutBracket
from worldcup_sim.progress import (
    knockout_progress,
    qualifier_progress,
    world_cup_group_progress,
)


class StageState(Enum):
    NOT_STARTED = "not-started"
    QUALIFIERS_COMPLETE = "qualifiers-complete"
    WORLD_CUP_ACTIVE = "world-cup-active"
    KNOCKOUT_ACTIVE = "knockout-active"
    FINISHED = "finished"


# states in which no World Cup stage has been created yet
PRE_WORLD_CUP_STATES = frozenset({StageState.NOT_STARTED, StageState.QUALIFIERS_COMPLETE})

Qualifiers = Union[Mapping[str, Sequence[Group]], Iterable[Group]]


def can_advance_to_world_cup(qualifiers: Qualifiers, state: StageState) -> bool:
    """True once every qualifier group is played out, and only while no World Cup exists."""
    if state not in PRE_WORLD_CUP_STATES:
        return False
    return qualifier_progress(qualifiers).is_complete


def can_advance_to_knockout(
    world_cup_groups: Iterable[Group], state: Optional[StageState] = None
) -> bool:
    if state is not None and state is not StageState.WORLD_CUP_ACTIVE:
        return False
    return world_cup_group_progress(world_cup_groups).is_complete


def stage_state(
    qualifiers: Qualifiers,
    world_cup_groups: Optional[Sequence[Group]] = None,
    knockout: Optional[KnockoutBracket] = None,
) -> StageState:
    """Tag the stored collections with the stage they represent."""
    if knockout is not None and knockout.all_matches():
        if knockout_progress(knockout).is_complete:
            return StageState.FINISHED
        return StageState.KNOCKOUT_ACTIVE
    if world_cup_groups:
        return StageState.WORLD_CUP_ACTIVE
    if qualifier_progress(qualifiers).is_complete:
        return StageState.QUALIFIERS_COMPLETE
    return StageState.NOT_STARTED
