"""Recording directory services."""

from .base import DirectoryError, SegmentIndex, SessionDirectory
from .graphql import GraphQLDirectory

__all__ = ["DirectoryError", "GraphQLDirectory", "SegmentIndex", "SessionDirectory"]
