"""Write selected workspace blobs to disk.

Binary mode writes the serialized TensorProto of each blob to
``<output_folder>/<name>``. Text mode writes ``<output_folder>/<name>.txt``
with one element value per line (row-major).
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from ..errors import CapabilityError, RunError
from .accelerator import Accelerator
from .artifacts import write_bytes
from .inputs import split_list
from .tensors import Blob, DeviceTensor, serialize_blob
from .workspace import TensorStore

LOGGER = logging.getLogger(__name__)

ALL_BLOBS = "*"


def resolve_output_names(store: TensorStore, output: str) -> list[str]:
    """Expand the output parameter and check every name exists."""

    if not output:
        return []
    names = store.blobs() if output == ALL_BLOBS else split_list(",", output)
    for name in names:
        if not store.has_blob(name):
            raise RunError(f"You requested a non-existing blob: {name}")
    return names


def format_tensor_text(arr: np.ndarray) -> str:
    flat = np.asarray(arr).reshape(-1)
    if flat.dtype.kind in "biu":
        lines = [str(int(v)) for v in flat]
    else:
        lines = [f"{float(v):.9g}" for v in flat]
    return "".join(line + "\n" for line in lines)


class OutputWriter:
    def __init__(self, accelerator: Accelerator) -> None:
        self.accelerator = accelerator

    def _host_values(self, blob: Blob) -> np.ndarray:
        tensor = blob.tensor
        if tensor is None or not tensor.has_data:
            raise RunError(f"Blob '{blob.name}' holds no tensor data.")
        if isinstance(tensor, DeviceTensor):
            if not self.accelerator.compiled_with_accelerator():
                raise CapabilityError("Not support GPU: cannot read back device tensors.")
        return tensor.numpy()

    def write_text(self, blob: Blob, prefix: str) -> Path:
        path = Path(f"{prefix}{blob.name}.txt")
        text = format_tensor_text(self._host_values(blob))
        return write_bytes(path, text.encode("utf-8"))

    def write_binary(self, blob: Blob, prefix: str) -> Path:
        path = Path(f"{prefix}{blob.name}")
        return write_bytes(path, serialize_blob(blob))

    def write(
        self,
        store: TensorStore,
        output: str,
        output_folder: str = "",
        text_output: bool = False,
    ) -> list[Path]:
        names = resolve_output_names(store, output)
        prefix = f"{output_folder}/" if output_folder else ""

        written: list[Path] = []
        for name in names:
            blob = store[name]
            if text_output:
                path = self.write_text(blob, prefix)
            else:
                path = self.write_binary(blob, prefix)
            LOGGER.debug("Wrote output '%s' to %s", name, path)
            written.append(path)
        return written

