"""Entity, observation and relation value types.

Pure in-memory objects: no I/O happens here. ``MemoryStore`` maps these to
JSON files using ``to_dict()`` / ``from_dict()``.
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from memctx.memory.validation import Validator

DEFAULT_SOURCE = "user_input"

# Zero value written by implementations that serialize unset timestamps.
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _object(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{what} must be a JSON object, not {type(value).__name__}")
    return value


def _str_field(d: dict[str, Any], key: str) -> str:
    """String field; a missing key or null reads as empty."""
    value = d.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, not {type(value).__name__}")
    return value


def _list_field(d: dict[str, Any], key: str) -> list[Any]:
    value = d.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list, not {type(value).__name__}")
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; tolerates ``Z`` and nanosecond fractions."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, not {type(value).__name__}")
    text = value
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r".\1", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if parsed == _ZERO_TIME:
        return None
    return parsed


@dataclass
class Observation:
    """A single atomic fact attached to an entity."""

    id: str = ""
    text: str = ""
    created_at: datetime | None = None
    source: str = DEFAULT_SOURCE

    def populate_defaults(self) -> None:
        """Fill in a missing ID, timestamp and source."""
        if not self.id:
            self.id = new_id()
        if self.created_at is None:
            self.created_at = utc_now()
        if not self.source:
            self.source = DEFAULT_SOURCE

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Observation:
        return cls(
            id=_str_field(d, "id"),
            text=_str_field(d, "text"),
            created_at=parse_timestamp(d.get("createdAt")),
            source=_str_field(d, "source"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "createdAt": format_timestamp(self.created_at),
            "source": self.source,
        }


def new_observation(text: str, source: str = DEFAULT_SOURCE) -> Observation:
    return Observation(id=new_id(), text=text, created_at=utc_now(), source=source)


@dataclass
class Entity:
    """Named container of observations, keyed by ``name``."""

    name: str
    entity_type: str
    observations: list[Observation] = field(default_factory=list)
    created_at: datetime | None = None
    last_modified: datetime | None = None

    @classmethod
    def new(cls, name: str, entity_type: str) -> Entity:
        now = utc_now()
        return cls(name=name, entity_type=entity_type, created_at=now, last_modified=now)

    # ── Observations ──────────────────────────────────────────

    @property
    def observation_count(self) -> int:
        return len(self.observations)

    def add_observation(self, text: str) -> Observation:
        return self.add_observation_with_source(text, DEFAULT_SOURCE)

    def add_observation_with_source(self, text: str, source: str) -> Observation:
        observation = new_observation(text, source)
        self.observations.append(observation)
        self.last_modified = utc_now()
        return observation

    def remove_observation(self, observation_id: str) -> bool:
        """Remove the first observation with this ID. Returns whether one was found."""
        for i, obs in enumerate(self.observations):
            if obs.id == observation_id:
                del self.observations[i]
                self.last_modified = utc_now()
                return True
        return False

    def search_observations(self, query: str) -> list[Observation]:
        """Observations whose text contains ``query`` (case-insensitive), in order."""
        q = query.lower()
        return [obs for obs in self.observations if q in obs.text.lower()]

    # ── Validation ────────────────────────────────────────────

    def populate_defaults(self) -> None:
        """Fill in missing timestamps here and missing IDs/sources on observations."""
        now = utc_now()
        if self.created_at is None:
            self.created_at = now
        if self.last_modified is None:
            self.last_modified = now
        for obs in self.observations:
            obs.populate_defaults()

    def validate(self, validator: Validator) -> None:
        """Populate defaults, then check every field. Raises ``ValidationError``."""
        self.populate_defaults()
        validator.validate_entity(self)

    # ── Serialization ─────────────────────────────────────────

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Entity:
        return cls(
            name=_str_field(d, "name"),
            entity_type=_str_field(d, "entityType"),
            observations=[
                Observation.from_dict(_object(o, "observation"))
                for o in _list_field(d, "observations")
            ],
            created_at=parse_timestamp(d.get("createdAt")),
            last_modified=parse_timestamp(d.get("lastModified")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": [obs.to_dict() for obs in self.observations],
            "createdAt": format_timestamp(self.created_at),
            "lastModified": format_timestamp(self.last_modified),
        }

    @classmethod
    def from_json(cls, data: str | bytes) -> Entity:
        obj = json.loads(data)
        if not isinstance(obj, dict):
            raise ValueError("entity document must be a JSON object")
        return cls.from_dict(obj)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


def new_entity(name: str, entity_type: str) -> Entity:
    return Entity.new(name, entity_type)


@dataclass
class Relation:
    """Directed, typed edge between two entity names."""

    from_entity: str
    to_entity: str
    relation_type: str
    id: str = ""
    created_at: datetime | None = None

    def populate_defaults(self) -> None:
        if not self.id:
            self.id = new_id()
        if self.created_at is None:
            self.created_at = utc_now()

    def validate(self, validator: Validator) -> None:
        self.populate_defaults()
        validator.validate_relation(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Relation:
        return cls(
            id=_str_field(d, "id"),
            from_entity=_str_field(d, "from"),
            to_entity=_str_field(d, "to"),
            relation_type=_str_field(d, "relationType"),
            created_at=parse_timestamp(d.get("createdAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_entity,
            "to": self.to_entity,
            "relationType": self.relation_type,
            "createdAt": format_timestamp(self.created_at),
        }


def new_relation(from_entity: str, to_entity: str, relation_type: str) -> Relation:
    return Relation(
        id=new_id(),
        from_entity=from_entity,
        to_entity=to_entity,
        relation_type=relation_type,
        created_at=utc_now(),
    )


@dataclass
class RelationSet:
    """The single persisted collection of all relations."""

    relations: list[Relation] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.relations)

    def add_relation(self, from_entity: str, to_entity: str, relation_type: str) -> Relation:
        relation = new_relation(from_entity, to_entity, relation_type)
        self.relations.append(relation)
        return relation

    def remove_relation(self, relation_id: str) -> bool:
        for i, rel in enumerate(self.relations):
            if rel.id == relation_id:
                del self.relations[i]
                return True
        return False

    def get_relations_by_entity(self, entity_name: str) -> list[Relation]:
        """Relations where ``entity_name`` is either endpoint."""
        return [
            rel for rel in self.relations
            if rel.from_entity == entity_name or rel.to_entity == entity_name
        ]

    def get_relations_by_type(self, relation_type: str) -> list[Relation]:
        return [rel for rel in self.relations if rel.relation_type == relation_type]

    def find(self, from_entity: str, to_entity: str, relation_type: str) -> Relation | None:
        for rel in self.relations:
            if (
                rel.from_entity == from_entity
                and rel.to_entity == to_entity
                and rel.relation_type == relation_type
            ):
                return rel
        return None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RelationSet:
        return cls(relations=[
            Relation.from_dict(_object(r, "relation")) for r in _list_field(d, "relations")
        ])

    def to_dict(self) -> dict[str, Any]:
        return {"relations": [rel.to_dict() for rel in self.relations]}

    @classmethod
    def from_json(cls, data: str | bytes) -> RelationSet:
        obj = json.loads(data)
        if not isinstance(obj, dict):
            raise ValueError("relations document must be a JSON object")
        return cls.from_dict(obj)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


@dataclass
class SearchResult:
    """One observation match, tagged with its owning entity."""

    entity_name: str
    entity_type: str
    observation: Observation
