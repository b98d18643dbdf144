from .app import create_app
from .registry import ProgramRecord, ProgramRegistry

__all__ = [
    "create_app",
    "ProgramRecord",
    "ProgramRegistry",
]
