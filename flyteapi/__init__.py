"""Event-driven workflow core: flow definitions, packs, events, actions and HTTP handlers."""

__version__ = "1.0.0"