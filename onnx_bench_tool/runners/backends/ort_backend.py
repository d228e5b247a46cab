from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Optional

from ...errors import RunError
from .._types import DeviceType
from ..accelerator import Accelerator, CUDA_PROVIDER, OrtCudaAccelerator
from ..graph_def import GraphDefinition
from ..tensors import DeviceTensor, HostTensor
from ..workspace import TensorStore

LOGGER = logging.getLogger(__name__)

CPU_PROVIDER = "CPUExecutionProvider"

# Engine tags that have a dedicated onnxruntime provider. Other engines run on
# the default CPU kernels.
ENGINE_PROVIDERS: dict[str, str] = {
    "MKLDNN": "DnnlExecutionProvider",
    "CUDA": CUDA_PROVIDER,
}

_KERNEL_SUFFIX = "_kernel_time"


def _available_providers() -> list[str]:
    import onnxruntime as ort  # type: ignore

    return list(ort.get_available_providers())


def pick_providers(graph_def: GraphDefinition, available: list[str]) -> list[str]:
    """Derive the provider list from operator placement.

    Unavailable providers are dropped; the CPU provider is always last.
    """

    avail = set(available)
    wanted: list[str] = []
    if DeviceType.CUDA in graph_def.device_types():
        wanted.append(CUDA_PROVIDER)
    for engine in graph_def.engines():
        p = ENGINE_PROVIDERS.get(engine or "")
        if p and p not in wanted:
            wanted.append(p)

    out: list[str] = []
    for p in wanted:
        if p in avail:
            out.append(p)
        else:
            LOGGER.warning("Provider %s is not available in this onnxruntime build; falling back to CPU.", p)
    if CPU_PROVIDER not in out:
        out.append(CPU_PROVIDER)
    return out


class OrtExecutor:
    """ONNXRuntime execution engine.

    Notes:
    - onnxruntime is imported lazily so the module can be imported even in
      environments without ORT (tests may skip).
    - ``sess_options`` is a plain dict applied to ``ort.SessionOptions`` via
      attributes that exist.
    """

    name = "onnxruntime"

    def __init__(
        self,
        accelerator: Optional[Accelerator] = None,
        sess_options: Optional[dict[str, Any]] = None,
        profile_dir: Optional[Path] = None,
    ) -> None:
        self.accelerator = accelerator or OrtCudaAccelerator()
        self.sess_options = sess_options or {}
        self.profile_dir = profile_dir

    def accelerator_device_id(self) -> int:
        return int(getattr(self.accelerator, "device_id", 0))

    def _session_options(self, profile_prefix: Optional[str] = None) -> Any:
        import onnxruntime as ort  # type: ignore

        so = ort.SessionOptions()
        for k, v in self.sess_options.items():
            if hasattr(so, k):
                setattr(so, k, v)
        if profile_prefix is not None:
            so.enable_profiling = True
            so.profile_file_prefix = profile_prefix
        return so

    def make_session(self, model_bytes: bytes, providers: list[str], profile_prefix: Optional[str] = None) -> Any:
        import onnxruntime as ort  # type: ignore

        return ort.InferenceSession(
            model_bytes,
            sess_options=self._session_options(profile_prefix),
            providers=providers,
        )

    def create_net(self, graph_def: GraphDefinition, store: TensorStore) -> "OrtNet":
        providers = pick_providers(graph_def, _available_providers())
        model_bytes = graph_def.serialize()
        session = self.make_session(model_bytes, providers)
        LOGGER.info("Net '%s' ready | providers in use: %s", graph_def.name, list(session.get_providers()))
        return OrtNet(
            executor=self,
            name=graph_def.name,
            model_bytes=model_bytes,
            providers=providers,
            session=session,
            store=store,
            input_names=graph_def.input_names(),
            output_names=graph_def.output_names(),
            on_gpu=DeviceType.CUDA in graph_def.device_types(),
        )


class OrtNet:
    """A graph bound to a TensorStore and run through IOBinding."""

    def __init__(
        self,
        executor: OrtExecutor,
        name: str,
        model_bytes: bytes,
        providers: list[str],
        session: Any,
        store: TensorStore,
        input_names: list[str],
        output_names: list[str],
        on_gpu: bool = False,
    ) -> None:
        self.executor = executor
        self.name = name
        self.model_bytes = model_bytes
        self.providers = providers
        self.session = session
        self.store = store
        self.input_names = input_names
        self.output_names = output_names
        self.on_gpu = on_gpu

        self._profiled: Any = None
        self._profile_tmp: Optional[tempfile.TemporaryDirectory] = None
        self._op_times: Optional[dict[str, list[float]]] = None

    # Sessions -----------------------------------------------------------
    def _profiled_session(self) -> Any:
        if self._profiled is None:
            profile_dir = self.executor.profile_dir
            if profile_dir is None:
                self._profile_tmp = tempfile.TemporaryDirectory(prefix="onnx_bench_profile_")
                profile_dir = Path(self._profile_tmp.name)
            Path(profile_dir).mkdir(parents=True, exist_ok=True)
            prefix = str(Path(profile_dir) / f"{self.name or 'net'}_ops")
            self._profiled = self.executor.make_session(self.model_bytes, self.providers, profile_prefix=prefix)
        return self._profiled

    # Running ------------------------------------------------------------
    def _bind(self, session: Any) -> Any:
        binding = session.io_binding()
        for name in self.input_names:
            blob = self.store.get_blob(name)
            if blob is None or blob.tensor is None or not blob.tensor.has_data:
                raise RunError(f"Graph input '{name}' has no tensor in the workspace.")
            tensor = blob.tensor
            if isinstance(tensor, DeviceTensor):
                binding.bind_ortvalue_input(name, tensor.buffer)
            else:
                binding.bind_cpu_input(name, tensor.numpy())
        for name in self.output_names:
            if self.on_gpu:
                binding.bind_output(name, "cuda", self.executor.accelerator_device_id())
            else:
                binding.bind_output(name)
        return binding

    def run(self, per_operator: bool = False) -> bool:
        session = self._profiled_session() if per_operator else self.session
        binding = self._bind(session)
        session.run_with_iobinding(binding)
        for name, value in zip(self.output_names, binding.get_outputs()):
            if self.on_gpu:
                tensor = DeviceTensor.from_buffer(self.executor.accelerator, value)
            else:
                tensor = HostTensor.from_array(value.numpy())
            self.store.create_blob(name).reset(tensor)
        return True

    # Profiling ----------------------------------------------------------
    def operator_times(self) -> dict[str, list[float]]:
        """Per-node kernel times (ms) collected by the profiled session."""

        if self._op_times is not None:
            return self._op_times
        self._op_times = {}
        if self._profiled is None:
            return self._op_times

        profile_path = Path(self._profiled.end_profiling())
        try:
            events = json.loads(profile_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RunError(f"Cannot read operator profile '{profile_path}': {e}") from e

        for ev in events:
            if ev.get("cat") != "Node":
                continue
            ev_name = str(ev.get("name", ""))
            if not ev_name.endswith(_KERNEL_SUFFIX):
                continue
            node = ev_name[: -len(_KERNEL_SUFFIX)]
            self._op_times.setdefault(node, []).append(float(ev.get("dur", 0)) / 1000.0)
        return self._op_times

    def cleanup(self) -> None:
        self.session = None
        self._profiled = None
        if self._profile_tmp is not None:
            self._profile_tmp.cleanup()
            self._profile_tmp = None
