"""Memory store — entities with atomic observations, plus typed relations.

Layout:
    <data_dir>/
    ├── entities/
    │   └── <name>.json                # {name, entityType, observations[], createdAt, lastModified}
    └── relations/
        └── relations.json             # {relations: [{id, from, to, relationType, createdAt}]}

Entity names are used verbatim as filename stems, so names that are not
valid filenames are rejected by the validator. Single-process only: file
locks are in-memory reader-writer locks.
"""
