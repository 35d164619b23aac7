"""File-backed entity/relation store.

One JSON document per entity plus one aggregate document for all relations:

    <root>/entities/<name>.json
    <root>/relations/relations.json

Every file path has its own reader-writer lock (created on first use and
kept for the life of the store). Loaded documents are cached in memory; the
cache has its own lock and is always taken after a file lock, never before.
Files are replaced whole via a temporary sibling and ``os.replace``.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

from memctx.memory.errors import (
    AlreadyExistsError,
    DecodeError,
    NotFoundError,
    StorageIOError,
    StoreError,
    ValidationError,
)
from memctx.memory.locks import LockRegistry, RWLock
from memctx.memory.models import Entity, RelationSet, SearchResult
from memctx.memory.validation import NAME_MAX, Validator

logger = logging.getLogger(__name__)

ENTITY_SUFFIX = ".json"
# UnicodeDecodeError and json.JSONDecodeError are both ValueError.
_DECODE_ERRORS = (ValueError, TypeError, AttributeError)


class MemoryStore:
    """Durable, thread-safe access to entities and relations."""

    def __init__(self, root: Path | str, validator: Validator | None = None) -> None:
        self.root = Path(root)
        self.entities_dir = self.root / "entities"
        self.relations_file = self.root / "relations" / "relations.json"
        self.validator = validator or Validator()

        self._entity_cache: dict[str, Entity] = {}
        self._relation_cache: RelationSet | None = None
        self._cache_lock = RWLock()
        self._file_locks = LockRegistry()

    # ── 1. Initialization ─────────────────────────────────────

    def initialize(self) -> None:
        """Ensure base directories and the relations file exist. Idempotent."""
        logger.info("Initializing memory store at %s", self.root)
        try:
            self.entities_dir.mkdir(parents=True, exist_ok=True)
            self.relations_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"failed to create store directories under {self.root}: {e}", op="initialize"
            ) from e

        lock = self._file_lock(self.relations_file)
        with lock.write():
            if not self.relations_file.exists():
                self._write_file(self.relations_file, RelationSet().to_json(), op="initialize")
                logger.info("Created empty relations file %s", self.relations_file)

    def ping(self) -> None:
        """Raise ``StorageIOError`` if the base directory is not accessible."""
        try:
            self.root.stat()
        except OSError as e:
            raise StorageIOError(f"store root {self.root} is not accessible: {e}", op="ping") from e

    # ── 2. Paths & locks ──────────────────────────────────────

    def _entity_path(self, name: str) -> Path:
        """``entities/<name>.json``; the name is used verbatim once it passes validation."""
        self.validator.check_length("name", name, NAME_MAX)
        self.validator.check_entity_name(name)
        return self.entities_dir / f"{name}{ENTITY_SUFFIX}"

    def _file_lock(self, path: Path) -> RWLock:
        return self._file_locks.get(str(path))

    # ── 3. Raw file I/O (callers hold the path's lock) ────────

    def _write_file(self, path: Path, content: str, *, op: str, key: str = "") -> None:
        tmp = path.with_name(path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageIOError(f"failed to write {path}: {e}", op=op, key=key) from e
        logger.debug("Wrote %d chars to %s", len(content), path)

    def _read_entity_file(self, path: Path, name: str) -> Entity:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(
                f"entity '{name}' not found", op="get", kind="entity", key=name
            ) from None
        except OSError as e:
            raise StorageIOError(
                f"failed to read entity file {path}: {e}", op="get", kind="entity", key=name
            ) from e
        try:
            return Entity.from_json(data.decode("utf-8"))
        except _DECODE_ERRORS as e:
            raise DecodeError(
                f"entity file {path} is not a valid entity document: {e}",
                op="get", kind="entity", key=name,
            ) from e

    def _read_relations_file(self) -> RelationSet:
        try:
            data = self.relations_file.read_bytes()
        except FileNotFoundError:
            return RelationSet()
        except OSError as e:
            raise StorageIOError(
                f"failed to read relations file: {e}", op="get", kind="relations"
            ) from e
        try:
            return RelationSet.from_json(data.decode("utf-8"))
        except _DECODE_ERRORS as e:
            raise DecodeError(
                f"relations file {self.relations_file} is not a valid relations document: {e}",
                op="get", kind="relations",
            ) from e

    # ── 4. Entity CRUD ────────────────────────────────────────

    def create_entity(self, entity: Entity) -> None:
        """Validate and persist a new entity. Raises ``AlreadyExistsError`` if the name is taken."""
        entity.validate(self.validator)
        path = self._entity_path(entity.name)

        with self._file_lock(path).write():
            if path.exists():
                raise AlreadyExistsError(
                    f"entity '{entity.name}' already exists",
                    op="create", kind="entity", key=entity.name,
                )
            self._write_file(path, entity.to_json(), op="create", key=entity.name)
            self._cache_put(entity.name, entity)
        logger.info("Created entity: %s (%s)", entity.name, entity.entity_type)

    def get_entity(self, name: str) -> Entity:
        """Return the cached entity, loading it from disk on a miss."""
        path = self._entity_path(name)
        with self._cache_lock.read():
            cached = self._entity_cache.get(name)
        if cached is not None:
            logger.debug("Cache hit: %s", name)
            return cached

        logger.debug("Cache miss: %s", name)
        with self._file_lock(path).read():
            entity = self._read_entity_file(path, name)
            self._cache_put(name, entity)
        return entity

    def update_entity(self, entity: Entity) -> None:
        """Overwrite an existing entity's file. Raises ``NotFoundError`` if it has none."""
        entity.validate(self.validator)
        path = self._entity_path(entity.name)

        with self._file_lock(path).write():
            if not path.exists():
                raise NotFoundError(
                    f"entity '{entity.name}' does not exist",
                    op="update", kind="entity", key=entity.name,
                )
            self._write_file(path, entity.to_json(), op="update", key=entity.name)
            self._cache_put(entity.name, entity)
        logger.info("Updated entity: %s", entity.name)

    def delete_entity(self, name: str) -> None:
        """Remove an entity's file and cache entry. A missing file is not an error."""
        path = self._entity_path(name)
        with self._file_lock(path).write():
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageIOError(
                    f"failed to delete entity file {path}: {e}",
                    op="delete", kind="entity", key=name,
                ) from e
            with self._cache_lock.write():
                self._entity_cache.pop(name, None)
        logger.info("Deleted entity: %s", name)

    def entity_exists(self, name: str) -> bool:
        """Stat the entity file directly, bypassing the cache."""
        try:
            path = self._entity_path(name)
        except ValidationError:
            return False
        return path.is_file()

    def list_entities(self, entity_type: str = "") -> list[Entity]:
        """All readable entities, optionally only those of ``entity_type``.

        Loads through ``get_entity`` so the cache is warmed. Files that fail to
        load are skipped.
        """
        try:
            files = sorted(self.entities_dir.iterdir())
        except OSError as e:
            raise StorageIOError(
                f"failed to read entities directory {self.entities_dir}: {e}", op="list"
            ) from e

        entities: list[Entity] = []
        for path in files:
            if path.suffix != ENTITY_SUFFIX or not path.is_file():
                continue
            name = path.name[: -len(ENTITY_SUFFIX)]
            try:
                entity = self.get_entity(name)
            except StoreError as e:
                logger.warning("Skipping unreadable entity file %s: %s", path, e)
                continue
            if not entity_type or entity.entity_type == entity_type:
                entities.append(entity)
        return entities

    # ── 5. Search ─────────────────────────────────────────────

    def search_observations(self, query: str, entity_type: str = "") -> list[SearchResult]:
        """Case-insensitive substring search over every observation.

        Results follow ``list_entities`` order, then observation order.
        """
        results: list[SearchResult] = []
        for entity in self.list_entities(entity_type):
            for obs in entity.search_observations(query):
                results.append(SearchResult(entity.name, entity.entity_type, obs))
        return results

    # ── 6. Relations ──────────────────────────────────────────

    def get_relations(self) -> RelationSet:
        """Return the relation set; a missing file reads as an empty set."""
        with self._cache_lock.read():
            cached = self._relation_cache
        if cached is not None:
            return cached

        with self._file_lock(self.relations_file).read():
            relations = self._read_relations_file()
            with self._cache_lock.write():
                self._relation_cache = relations
        return relations

    def save_relations(self, relations: RelationSet) -> None:
        """Validate every relation and overwrite the relations file."""
        for relation in relations.relations:
            relation.validate(self.validator)

        with self._file_lock(self.relations_file).write():
            try:
                self.relations_file.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageIOError(
                    f"failed to create relations directory: {e}", op="save", kind="relations"
                ) from e
            self._write_file(self.relations_file, relations.to_json(), op="save")
            with self._cache_lock.write():
                self._relation_cache = relations
        logger.info("Saved %d relations", len(relations))

    # ── 7. Cache ──────────────────────────────────────────────

    def _cache_put(self, name: str, entity: Entity) -> None:
        with self._cache_lock.write():
            self._entity_cache[name] = entity

    def clear_cache(self) -> None:
        """Drop every cached entity and the cached relation set."""
        with self._cache_lock.write():
            self._entity_cache.clear()
            self._relation_cache = None
        logger.debug("Cache cleared")
