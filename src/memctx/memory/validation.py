"""Field validation for entities, observations and relations.

``Validator`` holds no state: build one and hand it to whatever needs it.
It only checks; filling in defaults is ``populate_defaults()`` on the models.
"""

from __future__ import annotations

import re
import uuid
from typing import TYPE_CHECKING

from memctx.memory.errors import ValidationError

if TYPE_CHECKING:
    from memctx.memory.models import Entity, Observation, Relation

NAME_MAX = 200
TYPE_MAX = 100
TEXT_MAX = 1000
SOURCE_MAX = 100

# Characters that cannot appear in an entity name, which is also its filename stem.
_ILLEGAL_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')


class Validator:
    """Length and format checks. Raises ``ValidationError`` on the first violation."""

    def validate_entity(self, entity: Entity) -> None:
        self.check_length("name", entity.name, NAME_MAX)
        self.check_length("entityType", entity.entity_type, TYPE_MAX)
        self.check_entity_name(entity.name)
        for i, obs in enumerate(entity.observations):
            self.validate_observation(obs, field_prefix=f"observations[{i}].")

    def validate_observation(self, obs: Observation, field_prefix: str = "") -> None:
        self.check_uuid(f"{field_prefix}id", obs.id)
        self.check_length(f"{field_prefix}text", obs.text, TEXT_MAX)
        self.check_length(f"{field_prefix}source", obs.source, SOURCE_MAX)

    def validate_relation(self, relation: Relation) -> None:
        self.check_uuid("id", relation.id)
        self.check_length("from", relation.from_entity, NAME_MAX)
        self.check_length("to", relation.to_entity, NAME_MAX)
        self.check_length("relationType", relation.relation_type, TYPE_MAX)

    def check_entity_name(self, name: str) -> None:
        """Names map verbatim to ``entities/<name>.json``; reject anything that escapes it."""
        if _ILLEGAL_NAME_CHARS.search(name):
            raise ValidationError("name", "contains characters not allowed in a filename")
        if name.startswith("."):
            raise ValidationError("name", "must not start with '.'")
        if name != name.strip():
            raise ValidationError("name", "must not start or end with whitespace")

    @staticmethod
    def check_length(field: str, value: str, maximum: int, minimum: int = 1) -> None:
        if not isinstance(value, str):
            raise ValidationError(field, "must be a string")
        if len(value) < minimum:
            raise ValidationError(field, "is required")
        if len(value) > maximum:
            raise ValidationError(field, f"must be at most {maximum} characters")

    @staticmethod
    def check_uuid(field: str, value: str) -> None:
        if not value:
            raise ValidationError(field, "is required")
        try:
            uuid.UUID(value)
        except (ValueError, TypeError, AttributeError):
            raise ValidationError(field, "must be a UUID") from None
