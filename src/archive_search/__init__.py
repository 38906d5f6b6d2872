"""In-memory inverted index over archive listings with overlap-ratio ranking."""

__version__ = "0.1.0"
