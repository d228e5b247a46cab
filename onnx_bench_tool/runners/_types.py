from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional


Status = Literal["ok", "failed"]


class DeviceType(str, enum.Enum):
    """Device an operator is placed on."""

    CPU = "CPU"
    CUDA = "CUDA"


@dataclass
class BenchCfg:
    """Invocation parameters for one benchmark run.

    List-valued parameters are kept as the raw delimited strings the user
    passed; the components that consume them do the splitting so that error
    messages can name the offending group.
    """

    net: Optional[Path] = None
    backend: str = "builtin"

    input: str = ""
    input_file: str = ""
    input_dims: str = ""
    input_type: str = ""

    output: str = ""
    output_folder: str = ""
    text_output: bool = False

    warmup: int = 0
    iter: int = 10
    run_individual: bool = False

    sleep_before_run: float = 0.0
    result_json: Optional[Path] = None

    # onnxruntime session tuning; 0 keeps the runtime default.
    intra_op_threads: int = 0
    profile_dir: Optional[Path] = None

    @classmethod
    def from_args(cls, args: Any) -> "BenchCfg":
        input_dims = str(args.input_dims or "")
        # The CLI default type only applies when shapes were requested.
        input_type = str(args.input_type or "") if input_dims else ""
        return cls(
            net=Path(args.net) if args.net else None,
            backend=str(args.backend),
            input=str(args.input or ""),
            input_file=str(args.input_file or ""),
            input_dims=input_dims,
            input_type=input_type,
            output=str(args.output or ""),
            output_folder=str(args.output_folder or ""),
            text_output=bool(args.text_output),
            warmup=int(args.warmup),
            iter=int(args.iter),
            run_individual=bool(args.run_individual),
            sleep_before_run=float(args.sleep_before_run or 0.0),
            result_json=Path(args.result_json) if args.result_json else None,
            intra_op_threads=int(args.intra_op_threads or 0),
            profile_dir=Path(args.profile_dir) if args.profile_dir else None,
        )


@dataclass
class LoopStats:
    """Counts produced by one pass of the execution loop."""

    warmup_runs: int = 0
    measured_runs: int = 0
    operator_runs: int = 0

    @property
    def total_runs(self) -> int:
        return self.warmup_runs + self.measured_runs + self.operator_runs


@dataclass
class BenchmarkResult:
    """Structured summary of a benchmark invocation."""

    schema_version: int = 1
    status: Status = "failed"

    graph: str = ""
    backend: str = ""
    device: str = DeviceType.CPU.value

    runs: dict[str, int] = field(default_factory=dict)
    net_ms: dict[str, Any] = field(default_factory=dict)
    operator_ms: dict[str, float] = field(default_factory=dict)
    outputs: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
