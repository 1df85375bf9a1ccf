"""hydroclip: detection clustering and hydrophone clip assembly."""

__version__ = "0.1.0"
