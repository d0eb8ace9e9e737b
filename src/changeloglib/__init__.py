"""ChangelogLib - detect which stored document a new upload updates."""

__version__ = "0.1.0"
