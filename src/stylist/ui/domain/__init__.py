"""Domain services owning tab and session state."""

from .session_manager import SessionManager
from .tab_controller import PipelineOptions, TabPipelineController

__all__ = ["PipelineOptions", "SessionManager", "TabPipelineController"]
