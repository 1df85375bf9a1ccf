"""Core clustering and clip assembly."""
