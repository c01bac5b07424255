"""DocketDive: retrieval-augmented chat over South African legal sources."""

__version__ = "0.1.0"
