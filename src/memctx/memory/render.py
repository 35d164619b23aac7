"""Render entities as Markdown documents with YAML frontmatter."""

from __future__ import annotations

from typing import TYPE_CHECKING

import frontmatter

if TYPE_CHECKING:
    from memctx.memory.models import Entity, Relation


def render_entity(entity: Entity, relations: list[Relation] | None = None) -> str:
    """Frontmatter carries the metadata; the body lists observations in order."""
    lines = [f"# {entity.name}", "", "## Observations"]
    for obs in entity.observations:
        day = obs.created_at.date().isoformat() if obs.created_at else "?"
        lines.append(f"- [{day}] {obs.text}")
    if not entity.observations:
        lines.append("(none)")

    if relations:
        lines += ["", "## Relations"]
        for rel in relations:
            lines.append(f"- {rel.from_entity} --{rel.relation_type}--> {rel.to_entity}")

    post = frontmatter.Post(
        "\n".join(lines) + "\n",
        name=entity.name,
        type=entity.entity_type,
        created=entity.created_at.isoformat(timespec="seconds") if entity.created_at else "",
        updated=entity.last_modified.isoformat(timespec="seconds") if entity.last_modified else "",
        observations=entity.observation_count,
    )
    return frontmatter.dumps(post)
