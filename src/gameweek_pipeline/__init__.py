"""Result sync, gameweek evaluation and skill-performance tracking pipeline."""

__version__ = "0.1.0"
