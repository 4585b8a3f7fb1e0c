"""
Pipeline orchestration for getlrc.

Modules:
    - orchestrator: The resumable per-file state machine
"""

from getlrc.pipeline.orchestrator import Orchestrator

__all__ = ["Orchestrator"]
