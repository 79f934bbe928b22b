"""zentimer: a focus timer with deadline-based countdowns and crash recovery."""

__version__ = "0.1.0"
