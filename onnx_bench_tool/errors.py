"""Exception types raised by the benchmark harness.

Every failure aborts the benchmark; callers that want a process exit code
should catch :class:`BenchError`.
"""

from __future__ import annotations


class BenchError(Exception):
    """Base class for all harness errors."""


class ConfigError(BenchError, ValueError):
    """Invalid invocation parameters (backend, descriptors, counts)."""


class CapabilityError(BenchError, RuntimeError):
    """The requested accelerator feature is not available on this host."""


class RunError(BenchError, RuntimeError):
    """Graph instantiation, execution or blob I/O failed."""
