"""FairHire: anonymized, rubric-driven candidate scoring and ranking."""

__version__ = "0.3.0"
