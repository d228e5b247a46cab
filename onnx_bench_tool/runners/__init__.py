"""Benchmark runner components.

This package defines:
- TensorStore / Blob / tensor model (host and device residency)
- BackendConfigurer (backend name -> device type + engine tag)
- InputMaterializer (file-backed or shape/type-described inputs)
- ExecutionLoop (warmup + measured runs, coarse/fine sampling)
- OutputWriter (binary or text blob dumps)
"""

from ._types import BenchCfg, BenchmarkResult, DeviceType, LoopStats
from .accelerator import Accelerator, HostOnlyAccelerator, OrtCudaAccelerator
from .backend_config import Backend, BackendConfigurer, BackendTarget
from .execution import ExecutionLoop, LoopState
from .graph_def import GraphDefinition, OperatorRecord
from .inputs import InputMaterializer
from .observers import ObserverConfig, SampleRateState, SamplingProfile
from .outputs import OutputWriter
from .tensors import Blob, DeviceTensor, HostTensor
from .workspace import TensorStore

__all__ = [
    "Accelerator",
    "Backend",
    "BackendConfigurer",
    "BackendTarget",
    "BenchCfg",
    "BenchmarkResult",
    "Blob",
    "DeviceTensor",
    "DeviceType",
    "ExecutionLoop",
    "GraphDefinition",
    "HostOnlyAccelerator",
    "HostTensor",
    "InputMaterializer",
    "LoopState",
    "LoopStats",
    "ObserverConfig",
    "OperatorRecord",
    "OrtCudaAccelerator",
    "OutputWriter",
    "SampleRateState",
    "SamplingProfile",
    "TensorStore",
]
