"""Graph definition: an ONNX model plus per-operator placement records."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import onnx

from ..errors import RunError
from ._types import DeviceType


DEFAULT_GRAPH_NAME = "benchmark"


@dataclass
class OperatorRecord:
    """One operator of the graph.

    ``engine`` is None when the operator should use its default
    implementation; an empty string is an explicit "default engine" request.
    """

    node: onnx.NodeProto
    engine: Optional[str] = None
    device_type: DeviceType = DeviceType.CPU

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def op_type(self) -> str:
        return self.node.op_type


class GraphDefinition:
    """Ordered operator records over a wrapped ``onnx.ModelProto``."""

    def __init__(self, model: onnx.ModelProto) -> None:
        self.model = model
        self.ops: list[OperatorRecord] = [OperatorRecord(node=n) for n in model.graph.node]

    def __len__(self) -> int:
        return len(self.ops)

    @classmethod
    def from_bytes(cls, data: bytes) -> "GraphDefinition":
        try:
            model = onnx.ModelProto.FromString(data)
        except Exception as e:
            raise RunError(f"Failed to parse graph definition: {type(e).__name__}: {e}") from e
        return cls(model)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "GraphDefinition":
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as e:
            raise RunError(f"Cannot read graph definition '{p}': {e}") from e
        return cls.from_bytes(data)

    def serialize(self) -> bytes:
        return self.model.SerializeToString()

    # Name ---------------------------------------------------------------
    @property
    def name(self) -> str:
        return self.model.graph.name

    @name.setter
    def name(self, value: str) -> None:
        self.model.graph.name = value

    def has_name(self) -> bool:
        return bool(self.model.graph.name)

    # Placement ----------------------------------------------------------
    def device_types(self) -> set[DeviceType]:
        return {op.device_type for op in self.ops}

    def engines(self) -> list[Optional[str]]:
        """Distinct engine tags in operator order."""

        out: list[Optional[str]] = []
        for op in self.ops:
            if op.engine not in out:
                out.append(op.engine)
        return out

    # IO -----------------------------------------------------------------
    def input_names(self) -> list[str]:
        """Graph inputs that must be fed (initializers excluded)."""

        init_names = {t.name for t in self.model.graph.initializer}
        return [vi.name for vi in self.model.graph.input if vi.name not in init_names]

    def output_names(self) -> list[str]:
        return [vi.name for vi in self.model.graph.output]
