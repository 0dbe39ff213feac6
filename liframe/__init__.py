"""Game-server building blocks: messages, sessions, server registry, scenes and a strategy economy."""

__version__ = "0.1.0"