"""PulseChart - artist popularity tracking and momentum leaderboard."""

__version__ = "0.1.0"
