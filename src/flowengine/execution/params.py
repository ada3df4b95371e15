"""
Parâmetros de execução (defaults por tipo + validação).

Cada tipo de execução possui um conjunto fechado de parâmetros com defaults.
Os parâmetros informados pelo usuário são combinados com os defaults
(`merge_with_defaults`, chaves desconhecidas rejeitadas) e validados em um
objeto imutável (`ExecutionParams` / `ScalarSearchParams`).

Invariantes validados antes de qualquer execução:
    - window >= 2
    - min_splits >= window + 1 (primeira checagem sempre possível)
    - max_splits >= min_splits
    - n_splits_per_iteration >= 1
    - threshold numérico, finito e não negativo
    - threshold_type e stability_strategy conhecidos
    - função custom presente para estratégias custom_*
    - todas as seeds possíveis da run cabem em [0, 2**32 - 1]
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, Callable, Dict, Optional

from flowengine.core.config.hashing import callable_name
from flowengine.core.config.merge import merge_with_defaults
from flowengine.core.exceptions import ConfigurationError

from .seeds import check_seed_budget
from .stability import (
    StrategyId,
    ThresholdType,
    build_strategy,
    parse_strategy_id,
    parse_threshold_type,
)


class ExecutionType(str, Enum):
    ADAPTIVE_OUTPUT_SEQUENTIAL = "adaptive_output_sequential"
    ADAPTIVE_OUTPUT_MULTICORE = "adaptive_output_multicore"
    ADAPTIVE_OUTPUT_SLURM = "adaptive_output_slurm"
    ADAPTIVE_INPUT_SCALAR_SEQUENTIAL = "adaptive_input_scalar_sequential"


DEFAULT_SLURM_TEMPLATE = """#!/bin/bash
#SBATCH --job-name={job_name}
#SBATCH --cpus-per-task={ncpus}
#SBATCH --mem={memory}
#SBATCH --time={walltime}
#SBATCH --output={log_file}
#SBATCH --error={log_file}

{command}
"""

DEFAULT_SLURM_RESOURCES: Dict[str, Any] = {"ncpus": 1, "memory": "2G", "walltime": "01:00:00"}

# `squeue` imprime um job id por linha para os jobs ainda na fila ou rodando
DEFAULT_STATUS_COMMAND = ("squeue", "-h", "-o", "%i", "-j")

_COMMON_DEFAULTS: Dict[str, Any] = {
    "metric_name": "mse",
    "metric_source": "eval_mse",
    "stability_strategy": "cohen_absolute",
    "stability_fn": None,
    "threshold": 0.2,
    "threshold_type": "absolute",
    "window": 3,
    "min_splits": 5,
    "max_splits": 50,
}

_BATCH_POLICY_DEFAULTS: Dict[str, Any] = {
    "max_retries": 0,
    "timeout_seconds": None,
}

# chaves consumidas pelos backends (repassadas sem validação semântica)
BACKEND_KEYS = (
    "registry_folder",
    "seed",
    "ncpus",
    "joblib_backend",
    "slurm_template",
    "resources",
    "submit_command",
    "status_command",
    "poll_interval",
)


def default_params(execution_type: ExecutionType) -> Dict[str, Any]:
    """Defaults do tipo de execução (novo dict a cada chamada)."""
    if execution_type is ExecutionType.ADAPTIVE_OUTPUT_SEQUENTIAL:
        return {**_COMMON_DEFAULTS, "seed_base": 1000}

    if execution_type is ExecutionType.ADAPTIVE_OUTPUT_MULTICORE:
        return {
            **_COMMON_DEFAULTS,
            "seed_base": 2000,
            "n_splits_per_iteration": 3,
            "registry_folder": os.path.join(".flowengine", "registry_multicore"),
            "seed": 123,
            "ncpus": os.cpu_count() or 1,
            "joblib_backend": "loky",
            **_BATCH_POLICY_DEFAULTS,
        }

    if execution_type is ExecutionType.ADAPTIVE_OUTPUT_SLURM:
        return {
            **_COMMON_DEFAULTS,
            "seed_base": 3000,
            "n_splits_per_iteration": 3,
            "registry_folder": os.path.join(".flowengine", "registry_slurm"),
            "seed": 123,
            "slurm_template": DEFAULT_SLURM_TEMPLATE,
            "resources": dict(DEFAULT_SLURM_RESOURCES),
            "submit_command": ["sbatch"],
            "status_command": list(DEFAULT_STATUS_COMMAND),
            "poll_interval": 5.0,
            **_BATCH_POLICY_DEFAULTS,
        }

    return {
        "metric_name": "mse",
        "metric_source": "eval_mse",
        "seed_base": 1000,
        "param_path": None,
        "param_start": 10,
        "param_step": 10,
        "direction": "minimize",
        "min_improvement": 0.001,
        "max_iterations": 10,
    }


def parse_execution_type(value: Any) -> ExecutionType:
    if isinstance(value, ExecutionType):
        return value
    try:
        return ExecutionType(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown execution type: {value!r}",
            details={"execution_type": repr(value), "allowed": [t.value for t in ExecutionType]},
            hint="Use um dos tipos de execução suportados em `execution.type`.",
        ) from e


# ---------------------------------------------------------------------------
# Validadores
# ---------------------------------------------------------------------------

def _require_int(name: str, value: Any, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(
            f"{name} must be an int >= {minimum}",
            details={name: repr(value)},
        )


def _require_number(name: str, value: Any, *, minimum: float = 0.0) -> None:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(float(value)):
        raise ConfigurationError(f"{name} must be a finite number", details={name: repr(value)})
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}", details={name: value})


def _require_name(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{name} must be a non-empty string", details={name: repr(value)})


# ---------------------------------------------------------------------------
# Parâmetros da execução adaptativa por output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExecutionParams:
    """Parâmetros resolvidos e validados de uma execução adaptativa."""

    execution_type: ExecutionType
    metric_name: str
    metric_source: str
    stability_strategy: StrategyId
    threshold: float
    threshold_type: ThresholdType
    window: int
    min_splits: int
    max_splits: int
    seed_base: int
    n_splits_per_iteration: int = 1
    stability_fn: Optional[Callable[..., Any]] = None
    max_retries: int = 0
    timeout_seconds: Optional[float] = None
    backend: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require_name("metric_name", self.metric_name)
        _require_name("metric_source", self.metric_source)
        _require_int("window", self.window, minimum=2)
        _require_int("min_splits", self.min_splits, minimum=self.window + 1)
        _require_int("max_splits", self.max_splits, minimum=self.min_splits)
        _require_int("n_splits_per_iteration", self.n_splits_per_iteration, minimum=1)
        _require_number("threshold", self.threshold)
        _require_int("max_retries", self.max_retries, minimum=0)
        if self.timeout_seconds is not None:
            _require_number("timeout_seconds", self.timeout_seconds)
            if self.timeout_seconds <= 0:
                raise ConfigurationError(
                    "timeout_seconds must be > 0 or None",
                    details={"timeout_seconds": self.timeout_seconds},
                )
        # estratégia custom sem função é rejeitada aqui
        build_strategy(self.stability_strategy, self.stability_fn)
        # o último batch é truncado, mas suas seeds são derivadas do batch cheio
        check_seed_budget(self.seed_base, self.max_splits + self.n_splits_per_iteration - 1)

    @property
    def is_parallel(self) -> bool:
        return self.execution_type is not ExecutionType.ADAPTIVE_OUTPUT_SEQUENTIAL

    def to_dict(self) -> Dict[str, Any]:
        """Representação serializável (callables pelo nome qualificado)."""
        return {
            "execution_type": self.execution_type.value,
            "metric_name": self.metric_name,
            "metric_source": self.metric_source,
            "stability_strategy": self.stability_strategy.value,
            "stability_fn": callable_name(self.stability_fn) if self.stability_fn else None,
            "threshold": self.threshold,
            "threshold_type": self.threshold_type.value,
            "window": self.window,
            "min_splits": self.min_splits,
            "max_splits": self.max_splits,
            "seed_base": self.seed_base,
            "n_splits_per_iteration": self.n_splits_per_iteration,
            "max_retries": self.max_retries,
            "timeout_seconds": self.timeout_seconds,
            "backend": dict(self.backend),
        }


# ---------------------------------------------------------------------------
# Parâmetros da busca escalar
# ---------------------------------------------------------------------------

class Direction(str, Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


@dataclass(frozen=True)
class ScalarSearchParams:
    metric_name: str
    metric_source: str
    seed_base: int
    param_path: str
    param_start: float
    param_step: float
    direction: Direction
    min_improvement: float
    max_iterations: int
    execution_type: ExecutionType = ExecutionType.ADAPTIVE_INPUT_SCALAR_SEQUENTIAL

    def __post_init__(self) -> None:
        _require_name("metric_name", self.metric_name)
        _require_name("metric_source", self.metric_source)
        _require_name("param_path", self.param_path)
        _require_number("param_start", self.param_start, minimum=-math.inf)
        _require_number("param_step", self.param_step, minimum=-math.inf)
        if self.param_step == 0:
            raise ConfigurationError("param_step must be != 0", details={"param_step": self.param_step})
        _require_number("min_improvement", self.min_improvement)
        _require_int("max_iterations", self.max_iterations, minimum=1)
        check_seed_budget(self.seed_base, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_type": self.execution_type.value,
            "metric_name": self.metric_name,
            "metric_source": self.metric_source,
            "seed_base": self.seed_base,
            "param_path": self.param_path,
            "param_start": self.param_start,
            "param_step": self.param_step,
            "direction": self.direction.value,
            "min_improvement": self.min_improvement,
            "max_iterations": self.max_iterations,
        }


def _parse_direction(value: Any) -> Direction:
    try:
        return Direction(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown direction: {value!r}",
            details={"direction": repr(value), "allowed": [d.value for d in Direction]},
        ) from e


def resolve_params(execution_type: Any, params: Optional[Dict[str, Any]] = None):
    """
    Resolve os parâmetros de um tipo de execução.

    Args:
        execution_type: `ExecutionType` ou seu valor textual.
        params: parâmetros informados pelo usuário (parciais).

    Returns:
        ExecutionParams | ScalarSearchParams

    Raises:
        ConfigurationError: tipo desconhecido, chave desconhecida ou valor inválido.
        UnknownStrategyError: estratégia de estabilidade fora do catálogo.
    """
    etype = parse_execution_type(execution_type)
    merged = merge_with_defaults(params, default_params(etype), section=f"execution.params ({etype.value})")

    if etype is ExecutionType.ADAPTIVE_INPUT_SCALAR_SEQUENTIAL:
        return ScalarSearchParams(
            metric_name=merged["metric_name"],
            metric_source=merged["metric_source"],
            seed_base=merged["seed_base"],
            param_path=merged["param_path"],
            param_start=merged["param_start"],
            param_step=merged["param_step"],
            direction=_parse_direction(merged["direction"]),
            min_improvement=merged["min_improvement"],
            max_iterations=merged["max_iterations"],
        )

    backend = {k: merged[k] for k in BACKEND_KEYS if k in merged}
    return ExecutionParams(
        execution_type=etype,
        metric_name=merged["metric_name"],
        metric_source=merged["metric_source"],
        stability_strategy=parse_strategy_id(merged["stability_strategy"]),
        threshold=merged["threshold"],
        threshold_type=parse_threshold_type(merged["threshold_type"]),
        window=merged["window"],
        min_splits=merged["min_splits"],
        max_splits=merged["max_splits"],
        seed_base=merged["seed_base"],
        n_splits_per_iteration=merged.get("n_splits_per_iteration", 1),
        stability_fn=merged["stability_fn"],
        max_retries=merged.get("max_retries", 0),
        timeout_seconds=merged.get("timeout_seconds"),
        backend=backend,
    )
