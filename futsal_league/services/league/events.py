"""
Match event value records.

Events are immutable once recorded. They carry no derived numbers; every
statistic is computed from them by the result applier and the standings
ranker.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from futsal_league.core.exceptions import InvalidEventError


class EventType(str, Enum):
    GOAL = "goal"
    OWN_GOAL = "own_goal"
    ASSIST = "assist"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"


class EventSide(str, Enum):
    HOME = "home"
    AWAY = "away"

    @property
    def opposite(self) -> "EventSide":
        return EventSide.AWAY if self is EventSide.HOME else EventSide.HOME


# Player stat line field incremented by each event type
EVENT_STAT_FIELD = {
    EventType.GOAL: "goals",
    EventType.OWN_GOAL: "own_goals",
    EventType.ASSIST: "assists",
    EventType.YELLOW_CARD: "yellow_cards",
    EventType.RED_CARD: "red_cards",
}


class EventPayload(BaseModel):
    """
    A match event as submitted by clients.

    ``team`` and ``player`` are accepted as aliases of ``side`` and
    ``player_id``. A missing minute is filled in by the caller (the live
    clock for running matches, 0 otherwise).
    """
    type: EventType = Field(..., description="goal, own_goal, assist, yellow_card or red_card")
    side: EventSide = Field(..., description="home or away: the involved player's team")
    player_id: Optional[str] = None
    minute: Optional[int] = Field(None, ge=0)
    administrative: bool = False
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def resolve_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("side") is None and data.get("team") is not None:
            data["side"] = data.pop("team")
        if not data.get("player_id") and data.get("player"):
            data["player_id"] = data.pop("player")
        return data


def validate_payload(payload: Union[EventPayload, Dict[str, Any]]) -> EventPayload:
    """Validate a raw event dict, raising InvalidEventError on bad input."""
    if isinstance(payload, EventPayload):
        return payload
    try:
        return EventPayload.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        summary = "; ".join(f"{error['field']}: {error['message']}" for error in errors)
        raise InvalidEventError(f"Invalid event: {summary}", {"errors": errors}) from exc


@dataclass(frozen=True)
class MatchEventRecord:
    """
    A goal, own goal, assist or card.

    ``side`` is the side of the involved player's own team. For an own goal
    that is the side of the player who put the ball in their own net; the
    goal itself counts for the opposite side.

    ``player_id`` may only be missing on administrative entries, which never
    contribute to player statistics.
    """
    type: EventType
    side: EventSide
    minute: int = 0
    player_id: Optional[str] = None
    administrative: bool = False
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "type", EventType(self.type))
        object.__setattr__(self, "side", EventSide(self.side))
        if self.minute is None or self.minute < 0:
            raise InvalidEventError(f"Event minute must be non-negative, got {self.minute!r}")
        if not self.player_id and not self.administrative:
            raise InvalidEventError(
                f"{self.type.value} event requires a player unless marked administrative",
                {"type": self.type.value},
            )

    @property
    def is_card(self) -> bool:
        return self.type in (EventType.YELLOW_CARD, EventType.RED_CARD)

    @property
    def is_scoring(self) -> bool:
        return self.type in (EventType.GOAL, EventType.OWN_GOAL)

    @property
    def benefiting_side(self) -> Optional[EventSide]:
        """Side credited with the goal, for scoring events."""
        if self.type is EventType.GOAL:
            return self.side
        if self.type is EventType.OWN_GOAL:
            return self.side.opposite
        return None

    @property
    def attributable(self) -> bool:
        """True when the event counts toward a player's statistics."""
        return bool(self.player_id) and not self.administrative

    @classmethod
    def from_payload(
        cls, payload: Union[EventPayload, Dict[str, Any]], default_minute: int = 0,
    ) -> "MatchEventRecord":
        event = validate_payload(payload)
        return cls(
            type=event.type,
            side=event.side,
            minute=event.minute if event.minute is not None else default_minute,
            player_id=event.player_id or None,
            administrative=event.administrative,
            description=event.description,
        )

    @classmethod
    def from_model(cls, event) -> "MatchEventRecord":
        return cls(
            type=event.type,
            side=event.side,
            minute=event.minute or 0,
            player_id=event.player_id,
            administrative=bool(event.administrative),
            description=event.description or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "side": self.side.value,
            "minute": self.minute,
            "player_id": self.player_id,
            "administrative": self.administrative,
            "description": self.description,
        }


def parse_events(payloads: Iterable[Dict[str, Any]]) -> List[MatchEventRecord]:
    return [MatchEventRecord.from_payload(p) for p in payloads]


def events_of(match) -> List[MatchEventRecord]:
    """Event records for a Match model, in recorded order."""
    return [MatchEventRecord.from_model(e) for e in match.events]
