"""Backend selection: map a backend name to a device type and engine tag.

The mapping is a closed table keyed by :class:`Backend`; resolving a name that
is not in the enumeration is a configuration error.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import ConfigError
from ._types import DeviceType
from .accelerator import Accelerator, require_accelerator
from .graph_def import GraphDefinition

LOGGER = logging.getLogger(__name__)


class Backend(str, enum.Enum):
    BUILTIN = "builtin"
    NNPACK = "nnpack"
    EIGEN = "eigen"
    MKL = "mkl"
    CUDA = "cuda"
    DEFAULT = "default"


@dataclass(frozen=True)
class BackendTarget:
    """Resolved placement for every operator of the graph.

    ``set_engine`` is False for ``builtin``: operators keep their own engine.
    """

    backend: Backend
    device_type: DeviceType
    engine: Optional[str]
    set_engine: bool = True


BACKEND_TABLE: dict[Backend, BackendTarget] = {
    Backend.BUILTIN: BackendTarget(Backend.BUILTIN, DeviceType.CPU, None, set_engine=False),
    Backend.NNPACK: BackendTarget(Backend.NNPACK, DeviceType.CPU, "NNPACK"),
    Backend.EIGEN: BackendTarget(Backend.EIGEN, DeviceType.CPU, "EIGEN"),
    Backend.MKL: BackendTarget(Backend.MKL, DeviceType.CPU, "MKLDNN"),
    Backend.CUDA: BackendTarget(Backend.CUDA, DeviceType.CUDA, "CUDA"),
    Backend.DEFAULT: BackendTarget(Backend.DEFAULT, DeviceType.CPU, ""),
}


def parse_backend(name: str) -> Backend:
    try:
        return Backend(name)
    except ValueError:
        choices = ", ".join(b.value for b in Backend)
        raise ConfigError(f"Backend is not supported: '{name}' (expected one of: {choices})") from None


class BackendConfigurer:
    """Stamp device type and engine onto every operator of a graph."""

    def __init__(self, accelerator: Accelerator) -> None:
        self.accelerator = accelerator

    def resolve(self, backend: str) -> BackendTarget:
        target = BACKEND_TABLE[parse_backend(backend)]
        if target.device_type is DeviceType.CUDA:
            require_accelerator(self.accelerator)
        return target

    def apply(self, graph_def: GraphDefinition, backend: str) -> BackendTarget:
        """Rewrite ``graph_def`` in place. Nothing is mutated if resolution fails."""

        target = self.resolve(backend)
        for op in graph_def.ops:
            op.device_type = target.device_type
            if target.set_engine:
                op.engine = target.engine
        LOGGER.info(
            "Backend '%s': %d operators on %s, engine=%r",
            target.backend.value,
            len(graph_def.ops),
            target.device_type.value,
            target.engine if target.set_engine else "<operator default>",
        )
        return target
