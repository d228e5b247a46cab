"""Command line interface for the ONNX benchmark harness."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .errors import BenchError
from .benchmark import run_benchmark
from .runners._types import BenchCfg
from .runners.backend_config import Backend

LOGGER = logging.getLogger("onnx_bench_tool")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _configure_logging(level: str) -> None:
    # Don't clobber an existing logging configuration (e.g. when embedded).
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format=LOG_FORMAT,
            handlers=[logging.StreamHandler(sys.stdout)],
        )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Benchmark an ONNX graph: warmup, measured runs, output dumps.")
    ap.add_argument("--net", required=True, help="Path to the ONNX graph definition")

    ap.add_argument(
        "--backend",
        type=str,
        default=Backend.BUILTIN.value,
        help="Engine/device selector: " + ", ".join(b.value for b in Backend),
    )

    ap.add_argument("--input", type=str, default="", help="Comma-separated input blob names")
    ap.add_argument("--input_file", type=str, default="",
                    help="Comma-separated serialized blob files, matched to --input names")
    ap.add_argument("--input_dims", type=str, default="",
                    help="Per-input shape, e.g. '1,3,224,224;1,10' (semicolon between inputs)")
    ap.add_argument("--input_type", type=str, default="float",
                    help="Per-input element type (uint8_t|float), semicolon-separated. Used with --input_dims.")

    ap.add_argument("--output", type=str, default="",
                    help="Comma-separated output blob names, or '*' for every blob")
    ap.add_argument("--output_folder", type=str, default="", help="Folder for output files")
    ap.add_argument("--text_output", action="store_true", help="Write outputs as text instead of binary blobs")

    ap.add_argument("--warmup", type=int, default=0, help="Number of warmup runs")
    ap.add_argument("--iter", type=int, default=10, help="Number of measured runs")
    ap.add_argument("--run_individual", action="store_true",
                    help="Replay each measured run with per-operator timing enabled")
    ap.add_argument("--sleep_before_run", type=float, default=0.0,
                    help="Seconds to sleep between setup and the first run")

    ap.add_argument("--result_json", type=str, default=None, help="Write a JSON result summary to this path")
    ap.add_argument("--intra_op_threads", type=int, default=0,
                    help="onnxruntime intra-op thread count (0 = runtime default)")
    ap.add_argument("--profile_dir", type=str, default=None,
                    help="Keep onnxruntime per-operator profiles (--run_individual) in this folder")
    ap.add_argument("--log_level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.log_level)

    cfg = BenchCfg.from_args(args)
    try:
        result = run_benchmark(cfg)
    except BenchError as e:
        LOGGER.error("%s: %s", type(e).__name__, e)
        return 1

    LOGGER.info(
        "Done: %d warmup, %d main, %d operator runs; %d outputs written.",
        result.runs.get("warmup", 0),
        result.runs.get("measured", 0),
        result.runs.get("operator", 0),
        len(result.outputs),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
