"""Entry point: python -m memctx [init|check]

- "init":  Create the data directory layout (idempotent)
- "check": Verify the store is reachable and print entity/relation counts
"""

from __future__ import annotations

import logging
import sys

from memctx.config import load_config
from memctx.memory.errors import StoreError
from memctx.memory.store import MemoryStore


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _build_store() -> MemoryStore:
    config = load_config()
    _setup_logging(config.log_level)
    return MemoryStore(config.data_dir)


def _run_init() -> None:
    store = _build_store()
    store.initialize()
    print(f"Initialized memory store at {store.root}")


def _run_check() -> None:
    store = _build_store()
    store.ping()
    entities = store.list_entities()
    relations = store.get_relations()
    print(f"{store.root}: {len(entities)} entities, {len(relations)} relations")


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else "check"

    try:
        if cmd == "init":
            _run_init()
        elif cmd == "check":
            _run_check()
        else:
            print("Usage: python -m memctx [init|check]")
            print("  init   Create the data directory layout")
            print("  check  Verify the store and print counts (default)")
            sys.exit(1)
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
