"""Benchmark harness for precompiled ONNX graphs.

The harness loads a graph, stamps backend/device settings onto its operators,
materializes input tensors, runs warmup + measured iterations and writes the
requested output blobs back to disk.
"""

__version__ = "0.1.0"
