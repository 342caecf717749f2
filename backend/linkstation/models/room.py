import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class GameState(str, Enum):
    WAITING = "waiting"
    LINKING = "linking"
    COMPLETED = "completed"


class Role(str, Enum):
    ATTENDER = "attender"
    OBSERVER = "observer"


MIN_MEMBER_LIMIT = 2
MAX_MEMBER_LIMIT = 99


class User(BaseModel):
    """Room-scoped participant. Master status lives on the room, not here."""

    id: str
    username: str
    display_name: str
    joined_at: datetime = Field(default_factory=datetime.utcnow)
    role: Role = Role.ATTENDER

    @property
    def is_attender(self) -> bool:
        return self.role == Role.ATTENDER


class MatchPair(BaseModel):
    user1: User
    user2: User


class MatchResult(BaseModel):
    matches: list[MatchPair] = []
    unmatched: list[User] = []
    completed_at: datetime = Field(default_factory=datetime.utcnow)


class Room(BaseModel):
    id: str
    room_name: str
    room_password: Optional[str] = None
    member_limit: int = Field(ge=MIN_MEMBER_LIMIT, le=MAX_MEMBER_LIMIT)
    # Insertion order is join order; master handover depends on it
    users: dict[str, User] = {}
    selections: dict[str, str] = {}
    game_state: GameState = GameState.WAITING
    match_result: Optional[MatchResult] = None
    master_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity: float = 0.0
    returned_to_waiting: list[str] = []

    @property
    def name_key(self) -> str:
        return self.room_name.lower()

    @property
    def is_empty(self) -> bool:
        return not self.users

    @property
    def is_full(self) -> bool:
        return len(self.users) >= self.member_limit

    def attenders(self) -> list[User]:
        return [user for user in self.users.values() if user.is_attender]

    def is_master(self, user_id: str) -> bool:
        return user_id == self.master_id

    def add_user(self, user: User) -> None:
        self.users[user.id] = user

    def remove_user(self, user_id: str) -> Optional[User]:
        """
        Drop a member and their vote. If the master leaves, the first
        remaining user by join order takes over.
        """
        user = self.users.pop(user_id, None)
        self.selections.pop(user_id, None)
        if user_id in self.returned_to_waiting:
            self.returned_to_waiting.remove(user_id)
        if self.master_id == user_id and self.users:
            self.master_id = next(iter(self.users))
        return user

    def reset_round(self) -> None:
        self.selections.clear()
        self.match_result = None
        self.returned_to_waiting.clear()

    # ==================== Storage ====================

    def to_storage(self) -> str:
        """
        JSON form used by the key-value store. Ordered mappings are written
        as lists of pairs so join and vote order survive any backend.
        """
        data = self.model_dump(mode="json", exclude={"users", "selections"})
        data["users"] = [
            [user_id, user.model_dump(mode="json")] for user_id, user in self.users.items()
        ]
        data["selections"] = [[voter, target] for voter, target in self.selections.items()]
        return json.dumps(data)

    @classmethod
    def from_storage(cls, raw: str) -> "Room":
        data: dict[str, Any] = json.loads(raw)
        data["users"] = {user_id: user for user_id, user in data.get("users") or []}
        data["selections"] = {voter: target for voter, target in data.get("selections") or []}
        return cls.model_validate(data)
