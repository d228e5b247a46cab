"""Accelerator capability abstraction.

The harness never branches on how it was built. Instead it asks an
:class:`Accelerator` whether CUDA support exists and whether a device is
present, and uses it to allocate / read back device-resident buffers.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

import numpy as np

from ..errors import CapabilityError

LOGGER = logging.getLogger(__name__)

CUDA_PROVIDER = "CUDAExecutionProvider"


class Accelerator(Protocol):
    name: str

    def compiled_with_accelerator(self) -> bool: ...

    def has_accelerator(self) -> bool: ...

    def allocate(self, shape: Sequence[int], dtype: np.dtype) -> Any: ...

    def to_host(self, buffer: Any) -> np.ndarray: ...


class OrtCudaAccelerator:
    """CUDA capability as seen through onnxruntime.

    Support is "compiled in" when the installed onnxruntime build exposes the
    CUDA execution provider. A device is "present" when a one-element buffer
    can actually be placed on ``cuda:0``.

    Notes:
    - onnxruntime is imported lazily so the module imports without ORT.
    """

    name = "cuda"

    def __init__(self, device_id: int = 0) -> None:
        self.device_id = int(device_id)
        self._compiled: Optional[bool] = None
        self._present: Optional[bool] = None

    def compiled_with_accelerator(self) -> bool:
        if self._compiled is None:
            try:
                import onnxruntime as ort  # type: ignore

                self._compiled = CUDA_PROVIDER in ort.get_available_providers()
            except ImportError:
                self._compiled = False
        return self._compiled

    def has_accelerator(self) -> bool:
        if self._present is None:
            self._present = False
            if self.compiled_with_accelerator():
                try:
                    self.allocate((1,), np.dtype(np.float32))
                    self._present = True
                except Exception as e:
                    LOGGER.debug("CUDA probe allocation failed: %s", e)
        return self._present

    def allocate(self, shape: Sequence[int], dtype: np.dtype) -> Any:
        import onnxruntime as ort  # type: ignore

        host = np.zeros(tuple(int(d) for d in shape), dtype=dtype)
        return ort.OrtValue.ortvalue_from_numpy(host, "cuda", self.device_id)

    def to_host(self, buffer: Any) -> np.ndarray:
        return np.asarray(buffer.numpy())


class HostOnlyAccelerator:
    """Capability object for hosts without any accelerator support."""

    name = "none"

    def compiled_with_accelerator(self) -> bool:
        return False

    def has_accelerator(self) -> bool:
        return False

    def allocate(self, shape: Sequence[int], dtype: np.dtype) -> Any:
        raise CapabilityError("Not support GPU: no accelerator support in this build.")

    def to_host(self, buffer: Any) -> np.ndarray:
        raise CapabilityError("Not support GPU: no accelerator support in this build.")


def require_accelerator(accelerator: Accelerator) -> None:
    """Raise CapabilityError unless a usable accelerator device exists."""

    if not accelerator.compiled_with_accelerator():
        raise CapabilityError("NO GPU support: onnxruntime was built without CUDA.")
    if not accelerator.has_accelerator():
        raise CapabilityError("NO GPU support on this host machine: no CUDA device found.")
