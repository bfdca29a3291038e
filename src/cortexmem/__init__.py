from .main import Memory
from .trace import Tracer

__all__ = ["Memory", "Tracer"]
