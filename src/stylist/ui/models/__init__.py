"""Data models shared by the domain and presentation layers."""

from .tab_models import Style, Tab, TabPhase, TabStatus, TabView

__all__ = ["Style", "Tab", "TabPhase", "TabStatus", "TabView"]
