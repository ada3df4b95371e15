"""
Tipos canônicos do controlador de execução adaptativa.

Componentes principais:
    - TerminationReason → causa única de término do loop
    - UnitConfig        → configuração imutável de uma unidade (config base + seed)
    - UnitResult        → payload retornado pelo Unit Evaluator
    - BatchEntry        → entrada de um IterationBatch (seed + resultado)
    - UnitEvaluator     → protocolo do colaborador externo
    - extract_metric    → extração do escalar monitorado

Invariantes:
    - Enums possuem valores textuais canônicos (serializáveis)
    - UnitConfig / UnitResult / BatchEntry são frozen
    - O controlador só lê `metric_source` / `metric_name` do resultado;
      o restante do payload é repassado sem inspeção
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, Dict, Mapping, Protocol, runtime_checkable

from flowengine.core.exceptions import ConfigurationError


class TerminationReason(str, Enum):
    """
    Causa de término de uma execução.

    - STABLE: o critério de estabilidade foi satisfeito
    - MAX_ITERATIONS_REACHED: limite de unidades/iterações atingido (término normal)
    - NO_IMPROVEMENT: busca escalar parou por ausência de melhora
      (usado apenas pela busca escalar adaptativa)
    """
    STABLE = "stable"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    NO_IMPROVEMENT = "no_improvement"


@dataclass(frozen=True)
class UnitConfig:
    """Configuração de uma unidade: identidade, seed e config base (não mutada)."""

    unit_id: str
    seed: int
    config: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnitResult:
    """
    Resultado de uma unidade.

    Campos:
        - metrics: métricas por fonte de avaliação (`metrics[source][name]`)
        - split: identidade do split usado (ex.: índices de treino/teste, seed)
        - payload: dados adicionais livres, repassados sem inspeção
    """

    metrics: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    split: Dict[str, Any] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, source: str) -> Dict[str, Any]:
        return self.metrics[source]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": {k: dict(v) for k, v in self.metrics.items()},
            "split": dict(self.split),
            "payload": dict(self.payload),
        }


@dataclass(frozen=True)
class BatchEntry:
    """Entrada de um IterationBatch: `{seed, result}` de uma unidade."""

    seed: int
    result: Any


@runtime_checkable
class UnitEvaluator(Protocol):
    """
    Contrato do Unit Evaluator (colaborador externo).

    `evaluate(config, seed)` deve ser determinístico para o mesmo par
    `(config, seed)` e retornar um objeto com lookup
    `result[metric_source][metric_name] -> float`.

    Opcionalmente o evaluator expõe `units_per_invocation() -> int`; a
    execução adaptativa exige que o valor seja exatamente 1.
    """

    def evaluate(self, config: Mapping[str, Any], seed: int) -> Any:
        ...


def extract_metric(result: Any, metric_source: str, metric_name: str) -> float:
    """
    Extrai o escalar monitorado de um resultado de unidade.

    Raises:
        ConfigurationError: Se o caminho `(metric_source, metric_name)` não
            existir no resultado ou se o valor não for um número finito.
    """
    try:
        value = result[metric_source][metric_name]
    except (KeyError, TypeError, IndexError) as e:
        raise ConfigurationError(
            f"Metric '{metric_source}.{metric_name}' not found in unit result",
            details={"metric_source": metric_source, "metric_name": metric_name},
            hint="Verifique metric_source/metric_name contra as avaliações produzidas pelo Unit Evaluator.",
        ) from e

    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(float(value)):
        raise ConfigurationError(
            f"Metric '{metric_source}.{metric_name}' must be a finite number, got {value!r}",
            details={"metric_source": metric_source, "metric_name": metric_name, "value": repr(value)},
        )
    return float(value)
