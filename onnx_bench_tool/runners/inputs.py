"""Input materialization.

Inputs are described by parallel delimited lists:

- ``input``: comma-separated blob names
- ``input_file``: comma-separated serialized-blob files (file mode)
- ``input_dims``: ``;``-separated groups of comma-separated ints (shape mode)
- ``input_type``: ``;``-separated element types, ``uint8_t`` or ``float``

File mode and shape mode are mutually exclusive; file mode wins when both
are given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import CapabilityError, ConfigError
from .accelerator import Accelerator
from .tensors import parse_input_type, read_blob_file
from .workspace import TensorStore

LOGGER = logging.getLogger(__name__)


def split_list(sep: str, text: str) -> list[str]:
    """Split a delimited parameter. An empty string yields no items."""

    if not text:
        return []
    return text.split(sep)


def parse_dims(group: str, index: int) -> tuple[int, ...]:
    if not group.strip():
        raise ConfigError(f"Input dims #{index} is empty.")
    dims: list[int] = []
    for s in split_list(",", group):
        try:
            d = int(s.strip())
        except ValueError:
            raise ConfigError(f"Input dims #{index} ('{group}') is not a list of integers.") from None
        if d < 0:
            raise ConfigError(f"Input dims #{index} ('{group}') contains a negative dimension.")
        dims.append(d)
    return tuple(dims)


@dataclass(frozen=True)
class InputDescriptor:
    name: str
    file: Optional[str] = None
    dims: tuple[int, ...] = ()
    dtype: Optional[np.dtype] = None

    @property
    def source(self) -> str:
        return "file" if self.file is not None else "shape"


def parse_input_descriptors(
    input: str,
    input_file: str = "",
    input_dims: str = "",
    input_type: str = "",
) -> list[InputDescriptor]:
    """Validate the parallel lists and return one descriptor per name.

    Raises ConfigError on any mismatch; nothing is allocated here.
    """

    names = split_list(",", input)
    if not names:
        return []

    if input_file:
        files = split_list(",", input_file)
        if len(names) != len(files):
            raise ConfigError(
                f"Input name and file should have the same number. "
                f"Got {len(names)} names and {len(files)} files."
            )
        return [InputDescriptor(name=n, file=f) for n, f in zip(names, files)]

    if input_dims or input_type:
        dims_list = split_list(";", input_dims)
        if len(names) != len(dims_list):
            raise ConfigError(
                f"Input name and dims should have the same number of items. "
                f"Got {len(names)} names and {len(dims_list)} dims groups."
            )
        type_list = split_list(";", input_type)
        if len(names) != len(type_list):
            raise ConfigError(
                f"Input name and type should have the same number of items. "
                f"Got {len(names)} names and {len(type_list)} types."
            )
        return [
            InputDescriptor(name=n, dims=parse_dims(d, i), dtype=parse_input_type(t))
            for i, (n, d, t) in enumerate(zip(names, dims_list, type_list))
        ]

    raise ConfigError("You requested input tensors, but neither input_file nor input_dims is set.")


class InputMaterializer:
    """Populate a TensorStore from input descriptors.

    ``run_on_gpu`` is decided once by the caller (after the backend check) and
    selects device-resident tensors for shape mode.
    """

    def __init__(self, accelerator: Accelerator, run_on_gpu: bool = False) -> None:
        self.accelerator = accelerator
        self.run_on_gpu = bool(run_on_gpu)

    def materialize(
        self,
        store: TensorStore,
        input: str,
        input_file: str = "",
        input_dims: str = "",
        input_type: str = "",
    ) -> list[str]:
        descriptors = parse_input_descriptors(input, input_file, input_dims, input_type)
        if descriptors and descriptors[0].source == "shape" and self.run_on_gpu:
            if not self.accelerator.compiled_with_accelerator():
                raise CapabilityError("Not support GPU: device inputs need an accelerator build.")
            LOGGER.info("Running on GPU.")

        for desc in descriptors:
            if desc.file is not None:
                store.put_blob(read_blob_file(desc.file, desc.name))
                LOGGER.debug("Loaded input '%s' from %s", desc.name, desc.file)
                continue

            blob = store.get_blob(desc.name)
            if blob is None:
                blob = store.create_blob(desc.name)
            if self.run_on_gpu:
                tensor = blob.get_mutable_device(self.accelerator)
            else:
                tensor = blob.get_mutable_host()
            tensor.resize(desc.dims)
            tensor.mutable_data(desc.dtype)
            LOGGER.debug("Allocated input '%s' %s %s on %s", desc.name, list(desc.dims), desc.dtype, tensor.residency)

        return [d.name for d in descriptors]
