"""Speaker diarization normalization and session identity resolution for tabletop-RPG recordings."""

__version__ = "0.1.0"
