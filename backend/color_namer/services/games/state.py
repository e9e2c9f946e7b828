"""The session document: roster, phase, picker pointer and round artifacts.

``GameState`` round-trips through ``to_dict``/``from_dict`` as a flat
JSON-compatible record; that record is what every Store persists.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .colors import Color, avatar_color

LOBBY = 'LOBBY'
WAITING_FOR_PLAYERS = 'WAITING_FOR_PLAYERS'
PICKING = 'PICKING'
GUESSING = 'GUESSING'
REVEAL = 'REVEAL'

ACTIVE_PHASES = (PICKING, GUESSING, REVEAL)
DIFFICULTIES = ('easy', 'hard')


@dataclass
class Player:
    id: str
    name: str
    order: int
    avatar_color: str = ''
    score: int = 0
    connected: bool = True
    last_seen: float = 0.0

    def __post_init__(self):
        if not self.avatar_color:
            self.avatar_color = avatar_color(self.order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'order': self.order,
            'avatar_color': self.avatar_color,
            'score': self.score,
            'connected': self.connected,
            'last_seen': self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            id=data['id'],
            name=data['name'],
            order=int(data['order']),
            avatar_color=data.get('avatar_color') or '',
            score=int(data.get('score') or 0),
            connected=bool(data.get('connected', True)),
            last_seen=float(data.get('last_seen') or 0.0),
        )


def _color_or_none(data: Optional[Dict[str, Any]]) -> Optional[Color]:
    if data is None:
        return None
    return Color(float(data['lightness']), float(data['a']), float(data['b']))


@dataclass
class GameState:
    id: str
    players: List[Player] = field(default_factory=list)
    phase: str = LOBBY
    picker_index: int = 0
    host_id: Optional[str] = None
    round_number: int = 0
    round_seed: Optional[int] = None
    difficulty: str = 'easy'
    clue: Optional[str] = None
    picked_color: Optional[Color] = None
    guesses: Dict[str, Color] = field(default_factory=dict)
    target: Optional[Color] = None
    created_at: float = 0.0
    last_activity: float = 0.0

    def player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def index_of(self, player_id: str) -> int:
        for idx, p in enumerate(self.players):
            if p.id == player_id:
                return idx
        return -1

    @property
    def picker(self) -> Optional[Player]:
        if not self.players:
            return None
        return self.players[self.picker_index]

    @property
    def picker_id(self) -> Optional[str]:
        picker = self.picker
        return picker.id if picker else None

    def display_phase(self, min_players: int = 2) -> str:
        if self.phase == LOBBY and len(self.players) < min_players:
            return WAITING_FOR_PLAYERS
        return self.phase

    def clear_round(self) -> None:
        self.clue = None
        self.picked_color = None
        self.guesses = {}
        self.target = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'players': [p.to_dict() for p in self.players],
            'phase': self.phase,
            'picker_index': self.picker_index,
            'host_id': self.host_id,
            'round_number': self.round_number,
            'round_seed': self.round_seed,
            'difficulty': self.difficulty,
            'clue': self.clue,
            'picked_color': self.picked_color.to_dict() if self.picked_color else None,
            'guesses': {pid: c.to_dict() for pid, c in self.guesses.items()},
            'target': self.target.to_dict() if self.target else None,
            'created_at': self.created_at,
            'last_activity': self.last_activity,
        }

    def to_public_dict(self, min_players: int = 2) -> Dict[str, Any]:
        """The rendering sent to clients: no private pick, phase as displayed."""
        payload = self.to_dict()
        payload.pop('picked_color')
        payload['phase'] = self.display_phase(min_players)
        payload['picker_id'] = self.picker_id
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameState':
        return cls(
            id=data['id'],
            players=[Player.from_dict(p) for p in data.get('players') or []],
            phase=data.get('phase') or LOBBY,
            picker_index=int(data.get('picker_index') or 0),
            host_id=data.get('host_id'),
            round_number=int(data.get('round_number') or 0),
            round_seed=data.get('round_seed'),
            difficulty=data.get('difficulty') or 'easy',
            clue=data.get('clue'),
            picked_color=_color_or_none(data.get('picked_color')),
            guesses={pid: _color_or_none(c) for pid, c in (data.get('guesses') or {}).items()},
            target=_color_or_none(data.get('target')),
            created_at=float(data.get('created_at') or 0.0),
            last_activity=float(data.get('last_activity') or 0.0),
        )
