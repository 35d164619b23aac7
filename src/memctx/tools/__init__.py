"""Agent-facing tools built on the memory store."""
