"""Agent-facing memory tools.

These functions are designed to be exposed as tools to the AI agent
(remember/recall/search plus relation helpers). Each returns text meant for
the agent; bad input comes back as an ``Error: ...`` string rather than an
exception.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from memctx.memory.errors import (
    AlreadyExistsError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from memctx.memory.models import Entity, RelationSet
from memctx.memory.render import render_entity

if TYPE_CHECKING:
    from memctx.memory.store import MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_ENTITY_TYPE = "memory"


def get_memory_tools(
    store: MemoryStore,
    default_entity_type: str = DEFAULT_ENTITY_TYPE,
) -> dict[str, Callable[..., str]]:
    """Return a dict of tool_name -> callable for memory operations.

    These can be registered as MCP tools or called directly.
    """

    # Serializes read-modify-write of the relations document across these tools.
    relations_lock = threading.Lock()

    def remember_fact(
        entity_name: str,
        observation: str,
        entity_type: str = "",
        source: str = "",
    ) -> str:
        """Record an observation, creating the entity first if it does not exist.

        Exists-then-create is not atomic: if another caller creates the same
        name in between, the create fails and the existing entity is used.
        """
        if not entity_name:
            return "Error: entityName is required"
        if not observation:
            return "Error: observation is required"

        try:
            if store.entity_exists(entity_name):
                entity = store.get_entity(entity_name)
            else:
                entity = Entity.new(entity_name, entity_type or default_entity_type)
                try:
                    store.create_entity(entity)
                except AlreadyExistsError:
                    logger.debug("Entity %s created concurrently, reloading", entity_name)
                    entity = store.get_entity(entity_name)
        except ValidationError as e:
            return f"Error: {e}"

        if source:
            added = entity.add_observation_with_source(observation, source)
        else:
            added = entity.add_observation(observation)
        try:
            store.update_entity(entity)
        except StoreError as e:
            # entity may be the cached instance; undo before reporting
            entity.remove_observation(added.id)
            if isinstance(e, ValidationError):
                return f"Error: {e}"
            raise
        return f"✓ Remembered: {observation}"

    def recall_facts(entity_name: str = "", entity_type: str = "") -> str:
        """Show one entity in full, or list entities (optionally of one type)."""
        if entity_name:
            try:
                entity = store.get_entity(entity_name)
            except (NotFoundError, ValidationError):
                return "Entity not found"
            related = store.get_relations().get_relations_by_entity(entity.name)
            return render_entity(entity, related)

        entities = store.list_entities(entity_type)
        if entity_type:
            header = f"Entities of type '{entity_type}':"
        else:
            header = "All entities:"
        lines = [header]
        for entity in entities:
            lines.append(
                f"- {entity.name} ({entity.entity_type}): {entity.observation_count} observations"
            )
        return "\n".join(lines)

    def search_memory(query: str, entity_type: str = "") -> str:
        """Case-insensitive search across all observations."""
        if not query:
            return "Error: query is required"
        results = store.search_observations(query, entity_type)
        lines = [f"Search results for '{query}':"]
        if not results:
            lines.append("No results found.")
        for i, result in enumerate(results, 1):
            lines.append(
                f"{i}. [{result.entity_type}] {result.entity_name}: {result.observation.text}"
            )
        return "\n".join(lines)

    def relate_entities(from_entity: str, to_entity: str, relation_type: str) -> str:
        """Add a directed relation between two existing entities.

        Existence is checked before the relation file is written; an entity
        deleted in between leaves a dangling relation.
        """
        if not (from_entity and to_entity and relation_type):
            return "Error: from, to and relationType are required"
        if not store.entity_exists(from_entity):
            return f"Error: source entity '{from_entity}' does not exist"
        if not store.entity_exists(to_entity):
            return f"Error: target entity '{to_entity}' does not exist"

        with relations_lock:
            relations = RelationSet(list(store.get_relations().relations))
            if relations.find(from_entity, to_entity, relation_type) is not None:
                return "Error: relation already exists"
            relation = relations.add_relation(from_entity, to_entity, relation_type)
            try:
                store.save_relations(relations)
            except ValidationError as e:
                return f"Error: {e}"
        return f"✓ Related: {from_entity} --{relation_type}--> {to_entity} ({relation.id})"

    def unrelate_entities(relation_id: str) -> str:
        """Remove a relation by ID."""
        with relations_lock:
            relations = RelationSet(list(store.get_relations().relations))
            if not relations.remove_relation(relation_id):
                return "Error: relation not found"
            store.save_relations(relations)
        return f"✓ Removed relation {relation_id}"

    return {
        "remember_fact": remember_fact,
        "recall_facts": recall_facts,
        "search_memory": search_memory,
        "relate_entities": relate_entities,
        "unrelate_entities": unrelate_entities,
    }
