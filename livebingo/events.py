"""Wire events.

Every Socket.IO message in either direction has a pydantic model here.
Client payloads are validated against ``CLIENT_EVENTS`` before anything
touches the room; server payloads are produced from the models so both
directions share one vocabulary.
"""
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from livebingo.errors import ValidationFailed
from livebingo.services.bingo.cards import BALL_MAX, BALL_MIN, CELL_COUNT
from livebingo.services.bingo.patterns import normalize_pattern

PROTOCOL_VERSION = 1
MAX_NAME_LENGTH = 24


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


def clean_name(value):
    name = (value or '').strip()
    if not name:
        raise ValueError('Name is required')
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f'Name must be at most {MAX_NAME_LENGTH} characters')
    if '<' in name or '>' in name or any(ord(ch) < 32 for ch in name):
        raise ValueError('Name contains invalid characters')
    return name


# ---- Client -> server ----

class ClientEvent(WireModel):
    EVENT: ClassVar[str] = ''
    v: Literal[1] = PROTOCOL_VERSION


class RoomEvent(ClientEvent):
    room_id: str = Field(min_length=1, max_length=12)

    @field_validator('room_id')
    @classmethod
    def normalize_room_id(cls, value):
        code = value.strip().upper()
        if not code:
            raise ValueError('Room code is required')
        return code


class CreateRoom(ClientEvent):
    EVENT: ClassVar[str] = 'create_room'
    host_name: str
    winning_pattern: list[StrictInt]

    @field_validator('host_name')
    @classmethod
    def check_name(cls, value):
        return clean_name(value)

    @field_validator('winning_pattern')
    @classmethod
    def check_pattern(cls, value):
        return normalize_pattern(value)


class JoinRoom(RoomEvent):
    EVENT: ClassVar[str] = 'join_room'
    player_name: str
    player_id: Optional[str] = None

    @field_validator('player_name')
    @classmethod
    def check_name(cls, value):
        return clean_name(value)


class PlayerRef(WireModel):
    id: Optional[str] = None
    name: Optional[str] = None

    @model_validator(mode='after')
    def needs_identity(self):
        if not (self.id or self.name):
            raise ValueError('player id or name is required')
        return self


class RejoinRoom(RoomEvent):
    EVENT: ClassVar[str] = 'rejoin_room'
    player: PlayerRef


class LeaveRoom(RoomEvent):
    EVENT: ClassVar[str] = 'leave_room'


class StartGame(RoomEvent):
    EVENT: ClassVar[str] = 'start_game'


class RollNumber(RoomEvent):
    EVENT: ClassVar[str] = 'roll_number'


class MarkNumber(RoomEvent):
    EVENT: ClassVar[str] = 'mark_number'
    number: int = Field(ge=BALL_MIN, le=BALL_MAX)
    cell_index: int = Field(ge=0, lt=CELL_COUNT)


class RequestShuffle(RoomEvent):
    EVENT: ClassVar[str] = 'request_shuffle'


class KickPlayer(RoomEvent):
    EVENT: ClassVar[str] = 'kick_player'
    target_id: str = Field(min_length=1)


class UpdatePattern(RoomEvent):
    EVENT: ClassVar[str] = 'update_pattern'
    pattern: list[StrictInt]

    @field_validator('pattern')
    @classmethod
    def check_pattern(cls, value):
        return normalize_pattern(value)


class ClaimBingo(RoomEvent):
    EVENT: ClassVar[str] = 'claim_bingo'


class RestartGame(RoomEvent):
    EVENT: ClassVar[str] = 'restart_game'


class EndGame(RoomEvent):
    EVENT: ClassVar[str] = 'end_game'


CLIENT_EVENTS = {
    model.EVENT: model
    for model in (
        CreateRoom, JoinRoom, RejoinRoom, LeaveRoom, StartGame, RollNumber, MarkNumber,
        RequestShuffle, KickPlayer, UpdatePattern, ClaimBingo, RestartGame, EndGame,
    )
}


def parse_client_event(name, data):
    model = CLIENT_EVENTS.get(name)
    if model is None:
        raise ValidationFailed(f'Unknown event: {name}')
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as exc:
        errors = exc.errors()
        detail = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
        raise ValidationFailed(detail.removeprefix('Value error, ')) from exc


# ---- Server -> client ----

class ServerEvent(WireModel):
    EVENT: ClassVar[str] = ''

    def payload(self):
        return self.model_dump(by_alias=True, mode='json')


class RoomCreated(ServerEvent):
    EVENT: ClassVar[str] = 'room_created'
    room_id: str
    player: dict[str, Any]
    state: dict[str, Any]


class RoomJoined(ServerEvent):
    EVENT: ClassVar[str] = 'room_joined'
    room_id: str
    player: dict[str, Any]
    state: dict[str, Any]
    rejoined: bool = False


class SpectatorJoined(ServerEvent):
    EVENT: ClassVar[str] = 'spectator_joined'
    room_id: str
    player: dict[str, Any]
    state: dict[str, Any]
    message: str = 'Game in progress. You are spectating.'


class UpdatePlayerList(ServerEvent):
    EVENT: ClassVar[str] = 'update_player_list'
    players: list[dict[str, Any]]


class GameStarted(ServerEvent):
    EVENT: ClassVar[str] = 'game_started'
    status: str
    pattern: list[int]
    winners: list[str]


class NumberRolled(ServerEvent):
    EVENT: ClassVar[str] = 'number_rolled'
    number: int
    history: list[int]


class UpdatePlayerProgress(ServerEvent):
    EVENT: ClassVar[str] = 'update_player_progress'
    player_id: str
    remaining: int


class PlayerWon(ServerEvent):
    EVENT: ClassVar[str] = 'player_won'
    winner: str
    winners: list[str]
    rank: int


class FalseBingo(ServerEvent):
    EVENT: ClassVar[str] = 'false_bingo'
    name: str


class MarkSuccess(ServerEvent):
    EVENT: ClassVar[str] = 'mark_success'
    cell_index: int


class CardShuffled(ServerEvent):
    EVENT: ClassVar[str] = 'card_shuffled'
    matrix: list[list[int]]


class PlayerLeft(ServerEvent):
    EVENT: ClassVar[str] = 'player_left'
    message: str
    player_id: Optional[str] = None


class RoomDestroyed(ServerEvent):
    EVENT: ClassVar[str] = 'room_destroyed'
    message: str


class Kicked(ServerEvent):
    EVENT: ClassVar[str] = 'kicked'
    message: str = 'You were kicked by the host.'


class GameReset(ServerEvent):
    EVENT: ClassVar[str] = 'game_reset'
    message: str
    players: list[dict[str, Any]]
    state: dict[str, Any]
    can_join: bool = False


class GameOver(ServerEvent):
    EVENT: ClassVar[str] = 'game_over'
    winners: list[str]


class ActionError(ServerEvent):
    EVENT: ClassVar[str] = 'action_error'
    message: str
    code: str


class RoomNotFoundNotice(ServerEvent):
    EVENT: ClassVar[str] = 'room_not_found'
    message: str


class SessionExpiredNotice(ServerEvent):
    EVENT: ClassVar[str] = 'session_expired'
    message: str
