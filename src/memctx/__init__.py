"""memctx: durable entity/observation memory for assistant workflows."""

__version__ = "0.1.0"
