"""
Matching Engine

Pure functions over a Room: no storage, no clock of their own. Callers load
the room, apply one of these, then persist it.

State machine: waiting -> linking -> completed -> waiting.
"""

from datetime import datetime
from typing import Optional

from linkstation.exceptions import (
    AlreadyVotedException,
    InvalidGameStateException,
    NotAttenderException,
    NotEnoughAttendersException,
    NotRoomMasterException,
    SelfSelectionException,
    TargetNotFoundException,
    UserNotFoundException,
)
from linkstation.models.room import GameState, MatchPair, MatchResult, Room, User


MIN_ATTENDERS = 2


def start_game(room: Room, user_id: str) -> None:
    if not room.is_master(user_id):
        raise NotRoomMasterException("Only the room master can start the game")
    if room.game_state != GameState.WAITING:
        raise InvalidGameStateException(GameState.WAITING.value, room.game_state.value)
    if len(room.attenders()) < MIN_ATTENDERS:
        raise NotEnoughAttendersException(MIN_ATTENDERS)

    room.game_state = GameState.LINKING
    room.reset_round()


def record_selection(room: Room, voter_id: str, target_id: str) -> None:
    """Validate and record one vote. Raises without touching the room on rejection."""
    if room.game_state != GameState.LINKING:
        raise InvalidGameStateException(GameState.LINKING.value, room.game_state.value)
    voter = room.users.get(voter_id)
    if voter is None:
        raise UserNotFoundException("User is not in this room")
    if not voter.is_attender:
        raise NotAttenderException()
    if target_id not in room.users:
        raise TargetNotFoundException()
    if target_id == voter_id:
        raise SelfSelectionException()
    if voter_id in room.selections:
        raise AlreadyVotedException()

    room.selections[voter_id] = target_id


def all_attenders_voted(room: Room) -> bool:
    """
    Completion check: number of recorded votes against the number of
    *current* attenders. Votes are not pruned when someone stops being an
    attender, so the two counts can drift apart (see tests).
    """
    return len(room.selections) == len(room.attenders())


def resolve_matches(selections: dict[str, str], users: dict[str, User]) -> MatchResult:
    """
    Single pass over votes in insertion order. A voter whose target voted
    back forms a pair with it (voter is user1); anyone else is unmatched.
    Reciprocity is symmetric, so the partition does not depend on order.
    """
    matches: list[MatchPair] = []
    unmatched: list[User] = []
    processed: set[str] = set()

    for voter_id, target_id in selections.items():
        if voter_id in processed:
            continue
        voter = users.get(voter_id)
        if voter is None:
            processed.add(voter_id)
            continue

        target = users.get(target_id)
        mutual = (
            target is not None
            and target_id not in processed
            and selections.get(target_id) == voter_id
        )
        if mutual:
            matches.append(MatchPair(user1=voter, user2=target))
            processed.add(target_id)
        else:
            unmatched.append(voter)
        processed.add(voter_id)

    return MatchResult(matches=matches, unmatched=unmatched, completed_at=datetime.utcnow())


def complete_round(room: Room) -> MatchResult:
    """
    Resolve the round, move the room to ``completed`` and take matched
    users out of the pool. The result snapshot keeps their data for display.
    """
    result = resolve_matches(room.selections, room.users)
    room.game_state = GameState.COMPLETED
    room.match_result = result
    room.returned_to_waiting.clear()

    for pair in result.matches:
        room.remove_user(pair.user1.id)
        room.remove_user(pair.user2.id)
    return result


def submit_selection(room: Room, voter_id: str, target_id: str) -> Optional[MatchResult]:
    """Record a vote and complete the round when it was the last one."""
    record_selection(room, voter_id, target_id)
    if all_attenders_voted(room):
        return complete_round(room)
    return None


def return_to_waiting(room: Room, user_id: str) -> bool:
    """
    Mark ``user_id`` as back from the results screen. Once every current
    attender is back, the room returns to ``waiting``. Returns whether that
    happened.
    """
    if room.game_state != GameState.COMPLETED:
        raise InvalidGameStateException(GameState.COMPLETED.value, room.game_state.value)
    if user_id not in room.returned_to_waiting:
        room.returned_to_waiting.append(user_id)

    all_returned = all(user.id in room.returned_to_waiting for user in room.attenders())
    if all_returned:
        room.game_state = GameState.WAITING
        room.reset_round()
    return all_returned
