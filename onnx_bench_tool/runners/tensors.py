"""Tensor and blob model.

A :class:`Blob` holds at most one tensor, either a :class:`HostTensor` backed
by a numpy array or a :class:`DeviceTensor` backed by an accelerator buffer.
Blobs are encoded on disk as serialized ONNX ``TensorProto`` messages.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np
import onnx
from onnx import numpy_helper

from ..errors import ConfigError, RunError
from .accelerator import Accelerator


# Element types accepted by shape/type input descriptors.
INPUT_TYPES: dict[str, np.dtype] = {
    "uint8_t": np.dtype(np.uint8),
    "float": np.dtype(np.float32),
}


def parse_input_type(name: str) -> np.dtype:
    key = name.strip()
    if key not in INPUT_TYPES:
        raise ConfigError(f"Unsupported input type: {name}")
    return INPUT_TYPES[key]


def _as_dims(dims: Sequence[int]) -> tuple[int, ...]:
    out = tuple(int(d) for d in dims)
    for d in out:
        if d < 0:
            raise ConfigError(f"Tensor dims must be non-negative, got {list(out)}")
    return out


class _TensorBase:
    residency = "host"

    def __init__(self) -> None:
        self.shape: tuple[int, ...] = ()
        self.dtype: Optional[np.dtype] = None
        self._data: Any = None

    @property
    def size(self) -> int:
        return int(math.prod(self.shape))

    @property
    def has_data(self) -> bool:
        return self._data is not None

    def resize(self, dims: Sequence[int]) -> None:
        """Set the shape. Storage is dropped unless the element count matches."""

        shape = _as_dims(dims)
        if self._data is not None and int(math.prod(shape)) != self.size:
            self._data = None
            self.dtype = None
        self.shape = shape

    def mutable_data(self, dtype: np.dtype) -> Any:
        """Allocate storage of ``dtype`` for the current shape (eagerly)."""

        dtype = np.dtype(dtype)
        if self._data is None or self.dtype != dtype:
            self._data = self._allocate(self.shape, dtype)
            self.dtype = dtype
        return self._data

    def _allocate(self, shape: tuple[int, ...], dtype: np.dtype) -> Any:
        raise NotImplementedError

    def numpy(self) -> np.ndarray:
        raise NotImplementedError


class HostTensor(_TensorBase):
    """Host-resident tensor backed by a contiguous numpy array."""

    residency = "host"

    def _allocate(self, shape: tuple[int, ...], dtype: np.dtype) -> np.ndarray:
        return np.zeros(shape, dtype=dtype)

    def resize(self, dims: Sequence[int]) -> None:
        super().resize(dims)
        if self._data is not None:
            self._data = self._data.reshape(self.shape)

    def numpy(self) -> np.ndarray:
        if self._data is None:
            raise RunError("Tensor has no allocated data.")
        return self._data

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "HostTensor":
        t = cls()
        a = np.ascontiguousarray(arr)
        t.shape = tuple(int(d) for d in a.shape)
        t.dtype = a.dtype
        t._data = a
        return t


class DeviceTensor(_TensorBase):
    """Accelerator-resident tensor; storage is an opaque device buffer."""

    residency = "device"

    def __init__(self, accelerator: Accelerator) -> None:
        super().__init__()
        self.accelerator = accelerator

    def resize(self, dims: Sequence[int]) -> None:
        # Device buffers cannot be reshaped in place.
        shape = _as_dims(dims)
        if shape != self.shape:
            self._data = None
            self.dtype = None
        self.shape = shape

    def _allocate(self, shape: tuple[int, ...], dtype: np.dtype) -> Any:
        return self.accelerator.allocate(shape, dtype)

    @property
    def buffer(self) -> Any:
        return self._data

    def numpy(self) -> np.ndarray:
        if self._data is None:
            raise RunError("Tensor has no allocated data.")
        return self.accelerator.to_host(self._data)

    @classmethod
    def from_buffer(cls, accelerator: Accelerator, buffer: Any) -> "DeviceTensor":
        t = cls(accelerator)
        t.shape = tuple(int(d) for d in buffer.shape())
        t.dtype = _ort_element_dtype(buffer)
        t._data = buffer
        return t


Tensor = Union[HostTensor, DeviceTensor]


def _ort_element_dtype(buffer: Any) -> np.dtype:
    # OrtValue.data_type() returns e.g. "tensor(float)".
    name = str(buffer.data_type()).replace("tensor(", "").rstrip(")")
    mapping = {
        "float": np.float32,
        "float16": np.float16,
        "double": np.float64,
        "uint8": np.uint8,
        "int8": np.int8,
        "uint16": np.uint16,
        "int16": np.int16,
        "uint32": np.uint32,
        "int32": np.int32,
        "uint64": np.uint64,
        "int64": np.int64,
        "bool": np.bool_,
    }
    if name not in mapping:
        raise RunError(f"Unsupported device tensor type: {buffer.data_type()}")
    return np.dtype(mapping[name])


class Blob:
    """Named container holding zero or one tensor."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.tensor: Optional[Tensor] = None

    def __repr__(self) -> str:
        kind = "empty" if self.tensor is None else self.tensor.residency
        return f"Blob({self.name!r}, {kind})"

    @property
    def is_empty(self) -> bool:
        return self.tensor is None

    def reset(self, tensor: Optional[Tensor]) -> None:
        self.tensor = tensor

    def get_mutable_host(self) -> HostTensor:
        if not isinstance(self.tensor, HostTensor):
            self.tensor = HostTensor()
        return self.tensor

    def get_mutable_device(self, accelerator: Accelerator) -> DeviceTensor:
        if not isinstance(self.tensor, DeviceTensor):
            self.tensor = DeviceTensor(accelerator)
        return self.tensor


# ---------------------------- Encoding ----------------------------

def serialize_blob(blob: Blob, name: Optional[str] = None) -> bytes:
    """Encode a blob's tensor as a serialized ONNX TensorProto."""

    if blob.tensor is None or not blob.tensor.has_data:
        raise RunError(f"Blob '{blob.name}' holds no tensor data.")
    arr = np.ascontiguousarray(blob.tensor.numpy())
    proto = numpy_helper.from_array(arr, name=name or blob.name)
    return proto.SerializeToString()


def deserialize_blob(data: bytes, name: str) -> Blob:
    """Decode TensorProto bytes into a host-resident blob called ``name``."""

    proto = onnx.TensorProto()
    try:
        proto.ParseFromString(data)
        arr = numpy_helper.to_array(proto)
    except Exception as e:
        raise RunError(f"Failed to decode blob '{name}': {type(e).__name__}: {e}") from e
    blob = Blob(name)
    blob.reset(HostTensor.from_array(arr))
    return blob


def read_blob_file(path: Union[str, Path], name: str) -> Blob:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise RunError(f"Cannot read input file '{p}': {e}") from e
    return deserialize_blob(data, name)
