import pytest
from sqlalchemy import func, select

from conftest import X_PATTERN
from livebingo import db
from livebingo.errors import IllegalState
from livebingo.models import Draw, Room, Winner
from livebingo.services.bingo import rooms, store


def _room():
    room, _ = rooms.create_room('Hana', X_PATTERN, 'sid-host')
    return store.load_room(room.code)


class RacingDraw:
    """RNG where another writer commits the chosen number before our insert."""

    def __init__(self, room_id, races=1):
        self.room_id = room_id
        self.races = races
        self.stolen = []

    def choice(self, pool):
        number = pool[0]
        if self.races:
            self.races -= 1
            last = db.session.scalar(select(func.max(Draw.seq)).where(Draw.room_id == self.room_id)) or 0
            db.session.add(Draw(room_id=self.room_id, seq=last + 1, number=number))
            db.session.commit()
            self.stolen.append(number)
        return number


class RacingWinner:
    """Player stand-in; a rival winner lands between the rank read and our insert."""

    def __init__(self, room_id, name, races=1):
        self.room_id = room_id
        self.name = name
        self.races = races
        self.rivals = 0

    @property
    def id(self):
        if self.races:
            self.races -= 1
            self.rivals += 1
            taken = db.session.scalar(select(func.count(Winner.id)).where(Winner.room_id == self.room_id))
            db.session.add(Winner(room_id=self.room_id, player_name=f'Rival{self.rivals}', rank=taken + 1))
            db.session.commit()
        return None


def test_contested_draw_retries_with_a_fresh_number(flask_app):
    room = _room()
    rng = RacingDraw(room.id)
    number = store.append_draw(room, rng=rng)

    drawn = store.load_room(room.code).numbers_drawn
    assert number not in rng.stolen
    assert drawn == rng.stolen + [number]
    assert len(set(drawn)) == len(drawn)


def test_draw_gives_up_after_repeated_conflicts(flask_app):
    room = _room()
    rng = RacingDraw(room.id, races=store.MAX_WRITE_ATTEMPTS)
    with pytest.raises(IllegalState):
        store.append_draw(room, rng=rng)
    # Only the competing writer's rows landed
    assert store.load_room(room.code).numbers_drawn == rng.stolen


def test_rank_collision_between_winners_retries(flask_app):
    room = _room()
    rank = store.append_winner(room, RacingWinner(room.id, 'Alice'))
    assert rank == 2
    assert store.load_room(room.code).winner_names == ['Rival1', 'Alice']


def test_winner_append_gives_up_after_repeated_conflicts(flask_app):
    room = _room()
    contender = RacingWinner(room.id, 'Alice', races=store.MAX_WRITE_ATTEMPTS)
    with pytest.raises(IllegalState):
        store.append_winner(room, contender)
    names = store.load_room(room.code).winner_names
    assert 'Alice' not in names
    assert len(names) == store.MAX_WRITE_ATTEMPTS


def test_room_code_collision_regenerates(flask_app, monkeypatch):
    taken = _room().code
    codes = iter([taken, 'FRESH1'])
    monkeypatch.setattr(store, 'generate_room_code', lambda length: next(codes))

    room, host = store.insert_room('Gus', 'sid-gus', X_PATTERN)
    assert room.code == 'FRESH1'
    assert host.is_host and host.connection_id == 'sid-gus'
    assert Room.query.count() == 2


def test_room_code_allocation_gives_up(flask_app, monkeypatch):
    taken = _room().code
    monkeypatch.setattr(store, 'generate_room_code', lambda length: taken)
    with pytest.raises(IllegalState):
        store.insert_room('Gus', 'sid-gus', X_PATTERN)
    assert Room.query.count() == 1
