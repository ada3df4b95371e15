"""
Control Loop: controlador de execução adaptativa orientado a convergência.

Máquina de estados:

    INIT → ITERATE → (DISPATCH → ACCUMULATE → CHECK_STABILITY)
         → {CONTINUE → ITERATE | STOP_STABLE | STOP_MAX}

    - INIT: o Unit Evaluator precisa produzir exatamente uma unidade por
      invocação do splitter (checado uma única vez, antes da iteração 1)
    - ITERATE: incrementa `i` e pede `batch_size` seeds ao sequenciador
      (sequencial: 1; paralelo: `n_splits_per_iteration`)
    - DISPATCH: uma UnitConfig por seed (config base + seed) → dispatcher
    - ACCUMULATE: métricas anexadas em ordem de geração, nunca de chegada
    - CHECK_STABILITY: apenas quando `len(history) >= min_splits`
    - STOP_STABLE → TerminationReason.STABLE
    - STOP_MAX → TerminationReason.MAX_ITERATIONS_REACHED (término normal,
      registrado como warning)

Decisões arquiteturais:
    - Nenhum objeto de controle mutável: cada passo recebe e devolve um
      `LoopState` imutável
    - O último batch é truncado para nunca exceder `max_splits`
    - Erros fatais são registrados no RunContext (payload serializável) e
      relançados; nenhum ExecutionOutput é produzido nesse caso

Limites explícitos:
    - Não conhece o conteúdo do resultado além de `(metric_source, metric_name)`
    - Não gerencia o ciclo de vida do worker pool (responsabilidade do dispatcher)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from flowengine.core.context import RunContext
from flowengine.core.errors import exception_to_payload, unit_cardinality_error
from flowengine.core.exceptions import BatchExecutionError, ConfigurationError

from .dispatch import BatchDispatcher
from .output import ExecutionOutput, build_execution_output
from .params import ExecutionParams
from .seeds import next_seeds
from .stability import StabilityVerdict, build_strategy, evaluate
from .types import BatchEntry, TerminationReason, UnitConfig, extract_metric

STEP_ID = "execution.adaptive"


@dataclass(frozen=True)
class LoopState:
    """Acumulador imutável do loop (um novo estado por iteração)."""

    iteration: int = 0
    history: Tuple[float, ...] = ()
    units: Tuple[Tuple[str, BatchEntry], ...] = ()
    last_verdict: Optional[StabilityVerdict] = None
    termination_reason: Optional[TerminationReason] = None

    @property
    def done(self) -> bool:
        return self.termination_reason is not None

    def units_dict(self) -> Dict[str, BatchEntry]:
        return dict(self.units)

    def seeds_dict(self) -> Dict[str, int]:
        return {uid: entry.seed for uid, entry in self.units}


def unit_id_for(position: int) -> str:
    """Identificador da unidade pela posição de geração (1-indexada)."""
    return f"split_{position}"


def units_per_invocation(evaluator: Any) -> int:
    fn = getattr(evaluator, "units_per_invocation", None)
    return int(fn()) if callable(fn) else 1


class AdaptiveController:
    """Controlador adaptativo por output (sequencial ou paralelo)."""

    def __init__(
        self,
        *,
        evaluator: Any,
        dispatcher: BatchDispatcher,
        params: ExecutionParams,
        ctx: Optional[RunContext] = None,
    ):
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.params = params
        self.ctx = ctx or RunContext.create(config={"execution": params.to_dict()})
        self._strategy = build_strategy(params.stability_strategy, params.stability_fn)

    @property
    def batch_size(self) -> int:
        return self.params.n_splits_per_iteration if self.params.is_parallel else 1

    # ------------------------------------------------------------------
    # INIT
    # ------------------------------------------------------------------
    def check_unit_cardinality(self) -> None:
        n = units_per_invocation(self.evaluator)
        if n != 1:
            payload = unit_cardinality_error(
                units_per_invocation=n,
                splitter=getattr(self.evaluator, "splitter_name", None),
            )
            raise ConfigurationError(payload.message, details=payload.details, hint=payload.hint)

    # ------------------------------------------------------------------
    # ITERATE → DISPATCH → ACCUMULATE → CHECK_STABILITY
    # ------------------------------------------------------------------
    def step(self, state: LoopState, base_config: Mapping[str, Any]) -> LoopState:
        p = self.params
        iteration = state.iteration + 1
        produced = len(state.history)
        k = min(self.batch_size, p.max_splits - produced)

        seeds = next_seeds(p.seed_base, iteration, self.batch_size)[:k]
        units = [
            UnitConfig(unit_id=unit_id_for(produced + j), seed=seed, config=base_config)
            for j, seed in enumerate(seeds, start=1)
        ]

        self.ctx.log(
            step_id=STEP_ID,
            level="info",
            message="dispatching batch",
            iteration=iteration,
            unit_ids=[u.unit_id for u in units],
            seeds=list(seeds),
            dispatcher=self.dispatcher.name,
        )
        results = self.dispatcher.run_batch(units, iteration=iteration, ctx=self.ctx)

        history = list(state.history)
        entries = list(state.units)
        for unit in units:
            if unit.unit_id not in results:
                raise BatchExecutionError(
                    f"Dispatcher returned no result for unit {unit.unit_id}",
                    details={"iteration": iteration, "unit_id": unit.unit_id},
                )
            result = results[unit.unit_id]
            history.append(extract_metric(result, p.metric_source, p.metric_name))
            entries.append((unit.unit_id, BatchEntry(seed=unit.seed, result=result)))

        verdict = state.last_verdict
        reason = None
        if len(history) >= p.min_splits:
            verdict = evaluate(
                self._strategy,
                history,
                p.window,
                p.threshold,
                threshold_type=p.threshold_type,
            )
            self.ctx.log(
                step_id=STEP_ID,
                level="info",
                message="stability check",
                iteration=iteration,
                n_units=len(history),
                **verdict.to_dict(),
            )
            if verdict.is_stable:
                reason = TerminationReason.STABLE

        if reason is None and len(history) >= p.max_splits:
            reason = TerminationReason.MAX_ITERATIONS_REACHED

        return replace(
            state,
            iteration=iteration,
            history=tuple(history),
            units=tuple(entries),
            last_verdict=verdict,
            termination_reason=reason,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def run(self, base_config: Optional[Mapping[str, Any]] = None) -> ExecutionOutput:
        p = self.params
        base_config = dict(base_config or {})
        self.ctx.log(
            step_id=STEP_ID,
            level="info",
            message="adaptive execution started",
            execution_type=p.execution_type.value,
            strategy=p.stability_strategy.value,
            batch_size=self.batch_size,
            min_splits=p.min_splits,
            max_splits=p.max_splits,
        )

        try:
            self.check_unit_cardinality()
            self.dispatcher.reset()
            state = LoopState()
            while not state.done:
                state = self.step(state, base_config)
        except Exception as e:
            self.ctx.log(
                step_id=STEP_ID,
                level="error",
                message="adaptive execution failed",
                error=exception_to_payload(e).to_dict(),
            )
            raise

        if state.termination_reason is TerminationReason.STABLE:
            v = state.last_verdict
            self.ctx.log(
                step_id=STEP_ID,
                level="info",
                message=(
                    f"stability reached ({v.strategy}): {v.stability_value:.4f} < "
                    f"{v.threshold_value:.4f} after {len(state.history)} units"
                ),
                iterations=state.iteration,
            )
        else:
            msg = f"maximum number of units ({p.max_splits}) reached without stability"
            self.ctx.log(step_id=STEP_ID, level="warning", message=msg, iterations=state.iteration)
            self.ctx.add_warning(step_id=STEP_ID, message=msg)

        return build_execution_output(
            execution_type=p.execution_type.value,
            units=state.units_dict(),
            metric_history=list(state.history),
            termination_reason=state.termination_reason,
            metric_name=p.metric_name,
            metric_source=p.metric_source,
            seeds_used=state.seeds_dict(),
            params=p.to_dict(),
            iterations=state.iteration,
            last_verdict=state.last_verdict,
            split_type=getattr(self.evaluator, "splitter_name", None),
        )
