"""
Result Reconstructor: montagem do `ExecutionOutput`.

O output é construído uma única vez, na saída do loop, a partir do estado
final do controlador. A montagem é pura: não executa unidades, não decide
parada e sempre sucede para entradas bem formadas.

Campos canônicos:
    - execution_type, units, continue_workflow
    - metric_name, metric_source, metric_history
    - termination_reason, used_seeds

Extras de rastreabilidade:
    - config_hash: SHA-256 dos parâmetros resolvidos
    - iterations, last_verdict
    - split_output: `{split_type, splits, seeds}` reconstruído das unidades
    - params, specific_output
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from flowengine.core.config.hashing import compute_config_hash

from .stability import StabilityVerdict
from .types import BatchEntry, TerminationReason


def _render(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, Mapping):
        return {str(k): _render(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_render(v) for v in value]
    return value


@dataclass(frozen=True)
class ExecutionOutput:
    execution_type: str
    units: Dict[str, BatchEntry]
    metric_name: str
    metric_source: str
    metric_history: List[float]
    termination_reason: TerminationReason
    used_seeds: Dict[str, int]
    continue_workflow: bool = True
    config_hash: Optional[str] = None
    iterations: int = 0
    last_verdict: Optional[StabilityVerdict] = None
    split_output: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    specific_output: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_units(self) -> int:
        return len(self.metric_history)

    def to_dict(self) -> Dict[str, Any]:
        """Representação JSON-safe do output."""
        return {
            "execution_type": self.execution_type,
            "units": {
                uid: {"seed": entry.seed, "result": _render(entry.result)}
                for uid, entry in self.units.items()
            },
            "continue_workflow": self.continue_workflow,
            "metric_name": self.metric_name,
            "metric_source": self.metric_source,
            "metric_history": list(self.metric_history),
            "termination_reason": self.termination_reason.value,
            "used_seeds": dict(self.used_seeds),
            "config_hash": self.config_hash,
            "iterations": self.iterations,
            "last_verdict": self.last_verdict.to_dict() if self.last_verdict else None,
            "split_output": _render(self.split_output),
            "params": _render(self.params),
            "specific_output": _render(self.specific_output),
        }


def reconstruct_split_output(units: Mapping[str, BatchEntry], split_type: Optional[str] = None) -> Dict[str, Any]:
    """Reconstrói `{split_type, splits, seeds}` a partir das unidades executadas."""
    splits: Dict[str, Any] = {}
    for uid, entry in units.items():
        split = getattr(entry.result, "split", None)
        if split is None and isinstance(entry.result, Mapping):
            split = entry.result.get("split")
        splits[uid] = split
    return {
        "split_type": split_type,
        "splits": splits,
        "seeds": {uid: entry.seed for uid, entry in units.items()},
    }


def build_execution_output(
    *,
    execution_type: str,
    units: Mapping[str, BatchEntry],
    metric_history: List[float],
    termination_reason: TerminationReason,
    metric_name: str,
    metric_source: str,
    seeds_used: Mapping[str, int],
    params: Optional[Dict[str, Any]] = None,
    iterations: int = 0,
    last_verdict: Optional[StabilityVerdict] = None,
    split_type: Optional[str] = None,
    specific_output: Optional[Dict[str, Any]] = None,
) -> ExecutionOutput:
    params = dict(params or {})
    return ExecutionOutput(
        execution_type=execution_type,
        units=dict(units),
        metric_name=metric_name,
        metric_source=metric_source,
        metric_history=list(metric_history),
        termination_reason=termination_reason,
        used_seeds=dict(seeds_used),
        continue_workflow=True,
        config_hash=compute_config_hash(params) if params else None,
        iterations=iterations,
        last_verdict=last_verdict,
        split_output=reconstruct_split_output(units, split_type),
        params=params,
        specific_output=dict(specific_output or {}),
    )
