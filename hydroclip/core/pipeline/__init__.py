"""Clip assembly pipeline."""

from .control import AssemblyControl
from .orchestrator import AssemblyRequest, AssemblyState, ConcatenationOrchestrator

__all__ = ["AssemblyControl", "AssemblyRequest", "AssemblyState", "ConcatenationOrchestrator"]
