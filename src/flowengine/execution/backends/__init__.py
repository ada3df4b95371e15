"""
Backends de worker pool do dispatcher paralelo.

Contrato (duck-typed):
    - `name`
    - `submit(evaluator, units, *, iteration, attempt=0) -> handle`
    - `wait(handle, *, timeout_seconds=None) -> {unit_id: JobOutcome}`
    - `reset()` → limpa o registry (entre runs independentes)
"""

from .base import JobOutcome, run_unit
from .multicore import MulticoreBackend
from .slurm import SlurmBackend

__all__ = ["JobOutcome", "MulticoreBackend", "SlurmBackend", "run_unit"]
