"""HTTP control plane: health, metrics and the authenticated notify webhook."""

from src.web.server import ControlPlane, build_app
from src.web.state import STATE_KEY, ControlPlaneState

__all__ = ["ControlPlane", "ControlPlaneState", "STATE_KEY", "build_app"]
