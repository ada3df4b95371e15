"""
Busca escalar adaptativa (sequencial).

Otimiza um único parâmetro escalar da config da unidade, localizado por um
caminho pontuado (`param_path`, ex.: `train.params.n_estimators`):

    - começa em `param_start` e avalia a unidade com seed fixa
      (`seed_base + 1`, o mesmo split em todas as iterações)
    - se a melhora (segundo `direction`) exceder `min_improvement`, o
      candidato vira o melhor e o valor avança `param_step`
    - caso contrário, para com `NO_IMPROVEMENT`
    - em `max_iterations`, para com `MAX_ITERATIONS_REACHED`

O output é um `ExecutionOutput` com
`specific_output = {param_values, best_metric, best_param, best_unit}`.
"""

from __future__ import annotations

import copy
import math
from typing import Any, Dict, List, Mapping, Optional

from flowengine.core.context import RunContext
from flowengine.core.errors import exception_to_payload
from flowengine.core.exceptions import BatchExecutionError, ConfigurationError

from .output import ExecutionOutput, build_execution_output
from .params import Direction, ScalarSearchParams
from .seeds import next_seeds
from .types import BatchEntry, TerminationReason, extract_metric

STEP_ID = "execution.scalar_search"


def set_by_path(config: Mapping[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """Retorna uma cópia de `config` com `value` atribuído no caminho pontuado."""
    out = copy.deepcopy(dict(config))
    keys = path.split(".")
    node = out
    for key in keys[:-1]:
        child = node.get(key)
        if child is None:
            child = {}
            node[key] = child
        elif not isinstance(child, dict):
            raise ConfigurationError(
                f"param_path '{path}' crosses a non-mapping value at '{key}'",
                details={"param_path": path, "key": key},
            )
        node = child
    node[keys[-1]] = value
    return out


class ScalarSearchController:
    def __init__(
        self,
        *,
        evaluator: Any,
        params: ScalarSearchParams,
        ctx: Optional[RunContext] = None,
    ):
        self.evaluator = evaluator
        self.params = params
        self.ctx = ctx or RunContext.create(config={"execution": params.to_dict()})

    def _improvement(self, best: float, metric: float) -> float:
        if self.params.direction is Direction.MINIMIZE:
            return best - metric
        return metric - best

    def run(self, base_config: Optional[Mapping[str, Any]] = None) -> ExecutionOutput:
        p = self.params
        base_config = dict(base_config or {})
        seed = next_seeds(p.seed_base, 1, 1)[0]

        self.ctx.log(
            step_id=STEP_ID,
            level="info",
            message="scalar search started",
            param_path=p.param_path,
            direction=p.direction.value,
            seed=seed,
        )

        history: List[float] = []
        param_values: List[Any] = []
        units: Dict[str, BatchEntry] = {}
        best_metric = math.inf if p.direction is Direction.MINIMIZE else -math.inf
        best_param: Any = None
        best_unit: Optional[str] = None
        reason = TerminationReason.MAX_ITERATIONS_REACHED
        current = p.param_start

        try:
            for i in range(1, p.max_iterations + 1):
                unit_id = f"param_{i}"
                config = set_by_path(base_config, p.param_path, current)
                try:
                    result = self.evaluator.evaluate(config, seed)
                except Exception as e:
                    raise BatchExecutionError(
                        f"Unit {unit_id} failed: {e}",
                        details={"unit_id": unit_id, "param_value": current, "error_type": type(e).__name__},
                    ) from e

                metric = extract_metric(result, p.metric_source, p.metric_name)
                history.append(metric)
                param_values.append(current)
                units[unit_id] = BatchEntry(seed=seed, result=result)
                self.ctx.log(
                    step_id=STEP_ID,
                    level="info",
                    message="candidate evaluated",
                    iteration=i,
                    param_value=current,
                    metric=metric,
                )

                if self._improvement(best_metric, metric) > p.min_improvement:
                    best_metric = metric
                    best_param = current
                    best_unit = unit_id
                    current = current + p.param_step
                else:
                    reason = TerminationReason.NO_IMPROVEMENT
                    break
        except Exception as e:
            self.ctx.log(
                step_id=STEP_ID,
                level="error",
                message="scalar search failed",
                error=exception_to_payload(e).to_dict(),
            )
            raise

        if reason is TerminationReason.MAX_ITERATIONS_REACHED:
            msg = f"maximum number of iterations ({p.max_iterations}) reached while still improving"
            self.ctx.log(step_id=STEP_ID, level="warning", message=msg)
            self.ctx.add_warning(step_id=STEP_ID, message=msg)
        else:
            self.ctx.log(
                step_id=STEP_ID,
                level="info",
                message=f"no further improvement after {len(history)} iterations (best = {best_metric:.4f})",
            )

        return build_execution_output(
            execution_type=p.execution_type.value,
            units=units,
            metric_history=history,
            termination_reason=reason,
            metric_name=p.metric_name,
            metric_source=p.metric_source,
            seeds_used={uid: entry.seed for uid, entry in units.items()},
            params=p.to_dict(),
            iterations=len(history),
            split_type=getattr(self.evaluator, "splitter_name", None),
            specific_output={
                "param_values": param_values,
                "best_metric": best_metric,
                "best_param": best_param,
                "best_unit": best_unit,
            },
        )
