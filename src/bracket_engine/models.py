"""
Data model for brackets, matches and the fight schedule.

Matches reference each other by id (forward link to the match consuming the
winner, back links to the feeding matches) so a bracket serializes to a plain
tree of dicts and lists.
"""
from typing import Dict, List, Optional

BYE = 'BYE'
THIRD_PLACE_ROUND = -1
RESULT_TYPES = ('submission', 'points', 'decision', 'disqualification', 'walkover')

GENDER_ORDER = ['Male', 'Female', 'Mixed']
AGE_BAND_ORDER = ['Kids 1', 'Kids 2', 'Kids 3', 'Infant', 'Junior', 'Teen',
                  'Juvenile', 'Adult', 'Master', 'Undefined']
BELT_ORDER = ['White', 'Grey', 'Yellow', 'Orange', 'Green', 'Blue',
              'Purple', 'Brown', 'Black', 'All']


def _rank(value, table):
    """Position of value in an ordering table; unknown values sort last."""
    try:
        return table.index(value)
    except ValueError:
        return len(table)


class Competitor:
    def __init__(self, id, name=None, club=None, seed=None, category_id=None):
        self.id = id
        self.name = name if name else id
        self.club = club
        self.seed = seed
        self.category_id = category_id

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'club': self.club,
            'seed': self.seed,
            'category_id': self.category_id,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data['id']),
            name=data.get('name'),
            club=data.get('club'),
            seed=data.get('seed'),
            category_id=data.get('category_id'),
        )

    def __eq__(self, other):
        return isinstance(other, Competitor) and self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"Competitor(id={self.id}, name={self.name}, seed={self.seed})"


class CategoryKey:
    """Gender / age band / belt triple with the canonical fight ordering."""

    SEPARATOR = '/'

    def __init__(self, gender, age_band, belt):
        self.gender = gender
        self.age_band = age_band
        self.belt = belt

    def sort_key(self):
        return (
            _rank(self.gender, GENDER_ORDER),
            _rank(self.age_band, AGE_BAND_ORDER),
            _rank(self.belt, BELT_ORDER),
        )

    def __str__(self):
        return self.SEPARATOR.join([self.gender, self.age_band, self.belt])

    @classmethod
    def from_string(cls, value: str) -> 'CategoryKey':
        parts = value.split(cls.SEPARATOR)
        if len(parts) != 3:
            raise ValueError(f"Invalid category key: {value!r}")
        return cls(*parts)

    def __eq__(self, other):
        if not isinstance(other, CategoryKey):
            return NotImplemented
        return (self.gender, self.age_band, self.belt) == (other.gender, other.age_band, other.belt)

    def __lt__(self, other):
        if not isinstance(other, CategoryKey):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self):
        return hash((self.gender, self.age_band, self.belt))

    def __repr__(self):
        return f"CategoryKey(gender={self.gender}, age_band={self.age_band}, belt={self.belt})"


class Category:
    def __init__(self, id, name, key: CategoryKey, max_weight=None):
        self.id = id
        self.name = name
        self.key = key
        self.max_weight = max_weight

    def sort_key(self):
        """Total order: key tables, weight limit (unknown last), name, id."""
        weight = (1, 0) if self.max_weight is None else (0, self.max_weight)
        return self.key.sort_key() + (weight, self.name, self.id)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'key': str(self.key),
            'max_weight': self.max_weight,
        }

    @classmethod
    def from_dict(cls, data):
        key = data['key']
        if isinstance(key, dict):
            key = CategoryKey(key['gender'], key['age_band'], key['belt'])
        else:
            key = CategoryKey.from_string(key)
        return cls(
            id=str(data['id']),
            name=data.get('name', str(data['id'])),
            key=key,
            max_weight=data.get('max_weight'),
        )

    def __repr__(self):
        return f"Category(id={self.id}, name={self.name}, key={self.key})"


class Match:
    def __init__(self, id, round, position, slot_a=None, slot_b=None,
                 winner_id=None, loser_id=None, next_match_id=None,
                 feeder_ids=None, result=None, walkover=False,
                 fight_number=None, resource=None):
        self.id = id
        self.round = round
        self.position = position
        self.slot_a = slot_a
        self.slot_b = slot_b
        self.winner_id = winner_id
        self.loser_id = loser_id
        self.next_match_id = next_match_id
        self.feeder_ids = list(feeder_ids) if feeder_ids else [None, None]
        self.result = result
        self.walkover = walkover
        self.fight_number = fight_number
        self.resource = resource

    @property
    def slots(self):
        return (self.slot_a, self.slot_b)

    @property
    def is_third_place(self):
        return self.round == THIRD_PLACE_ROUND

    def is_bye(self):
        return BYE in self.slots

    def is_pending(self):
        """True while at least one side is still undetermined."""
        return self.slot_a is None or self.slot_b is None

    def is_empty(self):
        return self.slot_a is None and self.slot_b is None

    def is_completed(self):
        return self.winner_id is not None

    def is_playable(self):
        if self.is_pending() or self.is_completed():
            return False
        return self.slot_a != BYE or self.slot_b != BYE

    def is_recordable(self):
        """A real fight between two known competitors."""
        return not self.is_pending() and not self.is_bye()

    def set_slot(self, index, value):
        if index == 0:
            self.slot_a = value
        else:
            self.slot_b = value

    def to_dict(self):
        return {
            'id': self.id,
            'round': self.round,
            'position': self.position,
            'slot_a': self.slot_a,
            'slot_b': self.slot_b,
            'winner_id': self.winner_id,
            'loser_id': self.loser_id,
            'next_match_id': self.next_match_id,
            'feeder_ids': list(self.feeder_ids),
            'result': dict(self.result) if self.result else None,
            'walkover': self.walkover,
            'fight_number': self.fight_number,
            'resource': self.resource,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            round=data['round'],
            position=data['position'],
            slot_a=data.get('slot_a'),
            slot_b=data.get('slot_b'),
            winner_id=data.get('winner_id'),
            loser_id=data.get('loser_id'),
            next_match_id=data.get('next_match_id'),
            feeder_ids=data.get('feeder_ids'),
            result=data.get('result'),
            walkover=data.get('walkover', False),
            fight_number=data.get('fight_number'),
            resource=data.get('resource'),
        )

    def __eq__(self, other):
        return isinstance(other, Match) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round}, position={self.position}, "
                f"slots=({self.slot_a}, {self.slot_b}), winner={self.winner_id})")


class Bracket:
    def __init__(self, id, category_id, bracket_size, rounds, participants,
                 third_place_match=None, group_name=None, winner_id=None,
                 runner_up_id=None, third_place_winner_id=None, version=1):
        self.id = id
        self.category_id = category_id
        self.bracket_size = bracket_size
        self.rounds: List[List[Match]] = rounds
        self.participants: List[str] = participants
        self.third_place_match: Optional[Match] = third_place_match
        self.group_name = group_name
        self.winner_id = winner_id
        self.runner_up_id = runner_up_id
        self.third_place_winner_id = third_place_winner_id
        self.version = version
        self._reindex()

    def _reindex(self):
        self._matches: Dict[str, Match] = {m.id: m for m in self.all_matches()}

    @property
    def total_rounds(self):
        return len(self.rounds)

    @property
    def final_match(self) -> Optional[Match]:
        if not self.rounds:
            return None
        return self.rounds[-1][0]

    @property
    def semifinals(self) -> List[Match]:
        if len(self.rounds) < 2:
            return []
        return self.rounds[-2]

    def all_matches(self) -> List[Match]:
        matches = [m for round_matches in self.rounds for m in round_matches]
        if self.third_place_match is not None:
            matches.append(self.third_place_match)
        return matches

    def get_match(self, match_id) -> Optional[Match]:
        return self._matches.get(match_id)

    def competitor_ids(self):
        return [p for p in self.participants if p != BYE]

    def to_dict(self):
        return {
            'id': self.id,
            'category_id': self.category_id,
            'group_name': self.group_name,
            'bracket_size': self.bracket_size,
            'participants': list(self.participants),
            'rounds': [[m.to_dict() for m in round_matches] for round_matches in self.rounds],
            'third_place_match': self.third_place_match.to_dict() if self.third_place_match else None,
            'winner_id': self.winner_id,
            'runner_up_id': self.runner_up_id,
            'third_place_winner_id': self.third_place_winner_id,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data):
        third_place = data.get('third_place_match')
        return cls(
            id=data['id'],
            category_id=data.get('category_id'),
            bracket_size=data['bracket_size'],
            rounds=[[Match.from_dict(m) for m in round_matches] for round_matches in data.get('rounds', [])],
            participants=list(data.get('participants', [])),
            third_place_match=Match.from_dict(third_place) if third_place else None,
            group_name=data.get('group_name'),
            winner_id=data.get('winner_id'),
            runner_up_id=data.get('runner_up_id'),
            third_place_winner_id=data.get('third_place_winner_id'),
            version=data.get('version', 1),
        )

    def __eq__(self, other):
        return isinstance(other, Bracket) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"Bracket(id={self.id}, size={self.bracket_size}, rounds={self.total_rounds}, "
                f"winner={self.winner_id}, version={self.version})")


class FightSchedule:
    """Ordered match ids per mat, as produced by the fight scheduler."""

    def __init__(self, mat_fight_order=None):
        self.mat_fight_order: Dict[str, List[str]] = mat_fight_order if mat_fight_order else {}

    @property
    def mats(self):
        return list(self.mat_fight_order.keys())

    def fights_on(self, mat_name):
        return list(self.mat_fight_order.get(mat_name, []))

    def locate(self, match_id):
        """Return (mat_name, fight_number) for a scheduled match, or None."""
        for mat_name, match_ids in self.mat_fight_order.items():
            if match_id in match_ids:
                return mat_name, match_ids.index(match_id) + 1
        return None

    def to_dict(self):
        return {mat: list(ids) for mat, ids in self.mat_fight_order.items()}

    @classmethod
    def from_dict(cls, data):
        return cls({mat: list(ids) for mat, ids in (data or {}).items()})

    def __eq__(self, other):
        return isinstance(other, FightSchedule) and self.to_dict() == other.to_dict()

    def __repr__(self):
        counts = {mat: len(ids) for mat, ids in self.mat_fight_order.items()}
        return f"FightSchedule({counts})"
