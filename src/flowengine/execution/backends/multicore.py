"""
Backend multicore local (joblib).

Cada unidade do batch vira um job `delayed(run_unit)(...)` executado por
`joblib.Parallel`. O join é implícito: `Parallel.__call__` só retorna quando
todos os jobs terminam. Cada job devolve um `JobOutcome` com o `unit_id`, de
modo que o agrupamento independe da ordem de chegada.

Registry:
    - `registry_folder/iter_<i>` é usado como `temp_folder` do joblib
      (memmapping de arrays grandes) e é apagado antes do uso
    - `reset()` remove o registry inteiro (entre runs independentes)
"""

from __future__ import annotations

from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from multiprocessing import TimeoutError as PoolTimeoutError
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from joblib import Parallel, delayed

from flowengine.core.exceptions import BatchExecutionError
from flowengine.execution.types import UnitConfig

from .base import JobOutcome, iteration_dir, job_rng_seed, remove_dir, reset_dir, run_unit


@dataclass(frozen=True)
class MulticoreHandle:
    iteration: int
    evaluator: Any
    units: List[UnitConfig]
    temp_folder: Path


class MulticoreBackend:
    name = "multicore"

    def __init__(
        self,
        *,
        registry_folder: str,
        ncpus: Optional[int] = None,
        joblib_backend: str = "loky",
        seed: Optional[int] = None,
    ):
        self.registry_folder = Path(registry_folder)
        self.ncpus = ncpus or 1
        self.joblib_backend = joblib_backend
        self.seed = seed

    def reset(self) -> None:
        remove_dir(self.registry_folder)

    def submit(
        self,
        evaluator: Any,
        units: Sequence[UnitConfig],
        *,
        iteration: int,
        attempt: int = 0,
    ) -> MulticoreHandle:
        folder = reset_dir(iteration_dir(self.registry_folder, iteration, attempt))
        return MulticoreHandle(
            iteration=iteration,
            evaluator=evaluator,
            units=list(units),
            temp_folder=folder,
        )

    def wait(self, handle: MulticoreHandle, *, timeout_seconds: Optional[float] = None) -> Dict[str, JobOutcome]:
        parallel = Parallel(
            n_jobs=self.ncpus,
            backend=self.joblib_backend,
            temp_folder=str(handle.temp_folder),
            timeout=timeout_seconds,
        )
        try:
            outcomes = parallel(
                delayed(run_unit)(handle.evaluator, unit, job_rng_seed(self.seed, handle.iteration, pos))
                for pos, unit in enumerate(handle.units, start=1)
            )
        except (TimeoutError, FuturesTimeoutError, PoolTimeoutError) as e:
            raise BatchExecutionError(
                f"Batch timed out after {timeout_seconds}s",
                details={
                    "iteration": handle.iteration,
                    "backend": self.name,
                    "timeout_seconds": timeout_seconds,
                    "unit_ids": [u.unit_id for u in handle.units],
                },
                hint="Aumente timeout_seconds ou reduza o custo por unidade.",
            ) from e
        return {o.unit_id: o for o in outcomes}
