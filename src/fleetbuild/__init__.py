from .dsl import library, service, ws
from .runner import run_projects
from .model import Coordinate, DependencyRef, Status

__all__ = ["library", "service", "ws", "run_projects", "Coordinate", "DependencyRef", "Status"]
