from .base import Executor, Net
from .ort_backend import OrtExecutor, OrtNet, pick_providers

__all__ = ["Executor", "Net", "OrtExecutor", "OrtNet", "pick_providers"]
