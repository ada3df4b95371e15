"""
Batch Dispatcher: execução bloqueante de um batch de unidades.

Variantes:
    - SequentialDispatcher: in-process, na ordem do batch, fail-fast
    - ParallelDispatcher: submete todas as unidades a um backend
      (multicore / cluster), espera todas (barreira de join) e agrupa os
      resultados por `unit_id`

Contrato:
    `run_batch(units) -> {unit_id: result}` retorna um mapa completo
    (uma entrada por unidade, na ordem de geração) ou levanta
    `BatchExecutionError`. Nunca há resultado parcial.

Política de falha:
    - default: nenhuma retentativa, nenhum timeout
    - `max_retries > 0`: apenas as unidades que falharam são
      resubmetidas, com a mesma seed (determinismo preservado)
    - `timeout_seconds`: repassado ao backend; estouro aborta o batch
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from flowengine.core.context import RunContext
from flowengine.core.errors import batch_failed
from flowengine.core.exceptions import BatchExecutionError

from .types import UnitConfig


class BatchDispatcher(Protocol):
    name: str

    def run_batch(
        self,
        units: Sequence[UnitConfig],
        *,
        iteration: int = 0,
        ctx: Optional[RunContext] = None,
    ) -> Dict[str, Any]:
        ...

    def reset(self) -> None:
        ...


def _raise_batch_failed(*, iteration: int, failed: List[Dict[str, Any]], backend: str) -> None:
    payload = batch_failed(iteration=iteration, failed_units=failed, backend=backend)
    ids = ", ".join(str(f.get("unit_id")) for f in failed)
    raise BatchExecutionError(
        f"{len(failed)} unit(s) failed in iteration {iteration}: {ids}",
        details=payload.details,
        hint=payload.hint,
    )


class SequentialDispatcher:
    """Executa as unidades uma a uma no processo atual."""

    name = "sequential"

    def __init__(self, evaluator: Any):
        self.evaluator = evaluator

    def reset(self) -> None:
        return None

    def run_batch(
        self,
        units: Sequence[UnitConfig],
        *,
        iteration: int = 0,
        ctx: Optional[RunContext] = None,
    ) -> Dict[str, Any]:
        results: Dict[str, Any] = {}
        for unit in units:
            try:
                results[unit.unit_id] = self.evaluator.evaluate(dict(unit.config), unit.seed)
            except Exception as e:
                payload = batch_failed(
                    iteration=iteration,
                    failed_units=[{
                        "unit_id": unit.unit_id,
                        "seed": unit.seed,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }],
                    backend=self.name,
                )
                raise BatchExecutionError(
                    f"Unit {unit.unit_id} failed in iteration {iteration}: {e}",
                    details=payload.details,
                    hint=payload.hint,
                ) from e
        return results


class ParallelDispatcher:
    """Fork-join sobre um backend de worker pool."""

    def __init__(
        self,
        evaluator: Any,
        backend: Any,
        *,
        max_retries: int = 0,
        timeout_seconds: Optional[float] = None,
    ):
        self.evaluator = evaluator
        self.backend = backend
        self.max_retries = int(max_retries)
        self.timeout_seconds = timeout_seconds

    @property
    def name(self) -> str:
        return getattr(self.backend, "name", type(self.backend).__name__)

    def reset(self) -> None:
        self.backend.reset()

    def run_batch(
        self,
        units: Sequence[UnitConfig],
        *,
        iteration: int = 0,
        ctx: Optional[RunContext] = None,
    ) -> Dict[str, Any]:
        units = list(units)
        results: Dict[str, Any] = {}
        pending = units
        failed: List[Dict[str, Any]] = []

        for attempt in range(self.max_retries + 1):
            handle = self.backend.submit(self.evaluator, pending, iteration=iteration, attempt=attempt)
            outcomes = self.backend.wait(handle, timeout_seconds=self.timeout_seconds)

            failed = []
            retry: List[UnitConfig] = []
            for unit in pending:
                outcome = outcomes.get(unit.unit_id)
                if outcome is None:
                    failed.append({
                        "unit_id": unit.unit_id,
                        "seed": unit.seed,
                        "error_type": "MissingResult",
                        "error": "job finished without reporting a result",
                    })
                    retry.append(unit)
                elif outcome.ok:
                    results[unit.unit_id] = outcome.result
                else:
                    failed.append(outcome.failure_details())
                    retry.append(unit)

            if not failed:
                break

            if attempt < self.max_retries and ctx is not None:
                ctx.log(
                    step_id="execution.dispatch",
                    level="warning",
                    message="retrying failed units",
                    iteration=iteration,
                    attempt=attempt + 1,
                    failed_units=[f["unit_id"] for f in failed],
                )
            pending = retry

        if failed:
            _raise_batch_failed(iteration=iteration, failed=failed, backend=self.name)

        return {u.unit_id: results[u.unit_id] for u in units}
