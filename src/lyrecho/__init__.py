"""lyrecho - synchronized lyrics for MPRIS music players."""

__version__ = "1.0.0"
