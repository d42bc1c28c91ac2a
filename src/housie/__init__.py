"""Live game engine for multiplayer Tambola (Housie)."""

__version__ = "1.0.0"
