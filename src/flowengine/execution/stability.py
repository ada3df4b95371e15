"""
Avaliador de estabilidade (convergência) da métrica monitorada.

Dado o histórico crescente de métricas (uma por unidade executada), uma janela
final de tamanho `window` e uma estratégia, produz um `StabilityVerdict`:

    - estatística global sobre o histórico inteiro
    - estatística da janela sobre os `window` valores finais
    - delta entre as duas (absoluto ou relativo)
    - `is_stable = stability_value < threshold_value` (estrito)

Catálogo fechado de estratégias (`StrategyId`):
    - mean / sd / mad / cv  × absolute / relative  → StatisticStrategy
    - cohen_absolute                              → CohenStrategy
    - custom_absolute / custom_relative           → CustomStrategy

Decisões arquiteturais:
    - Estratégias são variantes tipadas imutáveis; não existe registro global
    - O desvio padrão é amostral (ddof=1)
    - MAD é normal-consistente (escala 1.4826)
    - Divisões por estatísticas nulas usam piso `EPSILON`

Limites explícitos:
    - Não decide quando checar (responsabilidade do controlador)
    - Não acumula histórico
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Callable, Dict, Optional, Sequence, Union

import numpy as np

from flowengine.core.errors import unknown_strategy
from flowengine.core.exceptions import (
    ConfigurationError,
    InsufficientDataError,
    InvalidCustomResultError,
    UnknownStrategyError,
)

EPSILON = 1e-8
MAD_SCALE = 1.4826

CustomFn = Callable[[np.ndarray], Any]


class StrategyId(str, Enum):
    MEAN_ABSOLUTE = "mean_absolute"
    MEAN_RELATIVE = "mean_relative"
    SD_ABSOLUTE = "sd_absolute"
    SD_RELATIVE = "sd_relative"
    MAD_ABSOLUTE = "mad_absolute"
    MAD_RELATIVE = "mad_relative"
    CV_ABSOLUTE = "cv_absolute"
    CV_RELATIVE = "cv_relative"
    COHEN_ABSOLUTE = "cohen_absolute"
    CUSTOM_ABSOLUTE = "custom_absolute"
    CUSTOM_RELATIVE = "custom_relative"


class Statistic(str, Enum):
    MEAN = "mean"
    SD = "sd"
    MAD = "mad"
    CV = "cv"


class DeltaMode(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


class ThresholdType(str, Enum):
    """
    Como o valor configurado de threshold vira `threshold_value`.

    - absolute: usado como está
    - relative: multiplicado por `max(|mean(history)|, EPSILON)`
    - derived_from_sd: multiplicado pelo desvio padrão do histórico
    """
    ABSOLUTE = "absolute"
    RELATIVE = "relative"
    DERIVED_FROM_SD = "derived_from_sd"


# ---------------------------------------------------------------------------
# Estatísticas
# ---------------------------------------------------------------------------

def _sd(values: np.ndarray) -> float:
    if values.size < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def _mad(values: np.ndarray) -> float:
    median = np.median(values)
    return float(MAD_SCALE * np.median(np.abs(values - median)))


def _cv(values: np.ndarray) -> float:
    mean = float(np.mean(values))
    if abs(mean) < EPSILON:
        mean = math.copysign(EPSILON, mean)
    return _sd(values) / mean


_STATISTICS: Dict[Statistic, Callable[[np.ndarray], float]] = {
    Statistic.MEAN: lambda v: float(np.mean(v)),
    Statistic.SD: _sd,
    Statistic.MAD: _mad,
    Statistic.CV: _cv,
}


def _delta(window_stat: float, global_stat: float, mode: DeltaMode) -> float:
    absolute = abs(window_stat - global_stat)
    if mode is DeltaMode.ABSOLUTE:
        return absolute
    return absolute / max(abs(global_stat), EPSILON)


# ---------------------------------------------------------------------------
# Variantes de estratégia
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatisticStrategy:
    id: StrategyId
    statistic: Statistic
    delta: DeltaMode

    def compute(self, values: np.ndarray, window: int) -> float:
        fn = _STATISTICS[self.statistic]
        return _delta(fn(values[-window:]), fn(values), self.delta)


@dataclass(frozen=True)
class CohenStrategy:
    """
    Cohen's d entre a janela final e todo o histórico anterior a ela.

    Com menos de 2 valores fora da janela a comparação não é possível:
    retorna `+inf` (nunca estável), sem falhar.
    """

    id: StrategyId = StrategyId.COHEN_ABSOLUTE

    def compute(self, values: np.ndarray, window: int) -> float:
        recent = values[-window:]
        rest = values[:-window]
        if rest.size < 2:
            return math.inf
        pooled_sd = math.sqrt((_sd(recent) ** 2 + _sd(rest) ** 2) / 2.0)
        pooled_sd = max(pooled_sd, EPSILON)
        return abs(float(np.mean(recent)) - float(np.mean(rest))) / pooled_sd


@dataclass(frozen=True)
class CustomStrategy:
    """Estatística fornecida pelo usuário, aplicada ao histórico e à janela."""

    id: StrategyId
    fn: CustomFn
    delta: DeltaMode

    def _call(self, values: np.ndarray) -> float:
        out = self.fn(values)
        if isinstance(out, np.ndarray) and out.size == 1:
            out = out.reshape(-1)[0]
        if isinstance(out, (bool, np.bool_)) or not isinstance(out, Real):
            raise InvalidCustomResultError(
                "Custom stability function must return a single number",
                details={"returned_type": type(out).__name__},
                hint="A função custom deve receber um array de métricas e retornar um escalar.",
            )
        value = float(out)
        if math.isnan(value):
            raise InvalidCustomResultError(
                "Custom stability function returned NaN",
                details={"returned_type": type(out).__name__},
            )
        return value

    def compute(self, values: np.ndarray, window: int) -> float:
        return _delta(self._call(values[-window:]), self._call(values), self.delta)


Strategy = Union[StatisticStrategy, CohenStrategy, CustomStrategy]

_STATISTIC_IDS: Dict[StrategyId, tuple] = {
    StrategyId.MEAN_ABSOLUTE: (Statistic.MEAN, DeltaMode.ABSOLUTE),
    StrategyId.MEAN_RELATIVE: (Statistic.MEAN, DeltaMode.RELATIVE),
    StrategyId.SD_ABSOLUTE: (Statistic.SD, DeltaMode.ABSOLUTE),
    StrategyId.SD_RELATIVE: (Statistic.SD, DeltaMode.RELATIVE),
    StrategyId.MAD_ABSOLUTE: (Statistic.MAD, DeltaMode.ABSOLUTE),
    StrategyId.MAD_RELATIVE: (Statistic.MAD, DeltaMode.RELATIVE),
    StrategyId.CV_ABSOLUTE: (Statistic.CV, DeltaMode.ABSOLUTE),
    StrategyId.CV_RELATIVE: (Statistic.CV, DeltaMode.RELATIVE),
}

_CUSTOM_IDS: Dict[StrategyId, DeltaMode] = {
    StrategyId.CUSTOM_ABSOLUTE: DeltaMode.ABSOLUTE,
    StrategyId.CUSTOM_RELATIVE: DeltaMode.RELATIVE,
}


def allowed_strategies() -> list:
    return [s.value for s in StrategyId]


def parse_strategy_id(strategy: Union[str, StrategyId]) -> StrategyId:
    if isinstance(strategy, StrategyId):
        return strategy
    try:
        return StrategyId(strategy)
    except ValueError as e:
        payload = unknown_strategy(strategy=str(strategy), allowed=allowed_strategies())
        raise UnknownStrategyError(
            f"{payload.message}: {strategy!r}",
            details=payload.details,
            hint=payload.hint,
        ) from e


def build_strategy(
    strategy: Union[str, StrategyId],
    custom_fn: Optional[CustomFn] = None,
) -> Strategy:
    """
    Constrói a variante tipada a partir do identificador.

    Raises:
        UnknownStrategyError: identificador fora do catálogo.
        ConfigurationError: estratégia custom sem função callable.
    """
    sid = parse_strategy_id(strategy)

    if sid in _STATISTIC_IDS:
        statistic, delta = _STATISTIC_IDS[sid]
        return StatisticStrategy(id=sid, statistic=statistic, delta=delta)

    if sid is StrategyId.COHEN_ABSOLUTE:
        return CohenStrategy()

    if custom_fn is None or not callable(custom_fn):
        raise ConfigurationError(
            f"Strategy '{sid.value}' requires a callable custom function",
            details={"strategy": sid.value},
            hint="Informe `stability_fn` nos parâmetros de execução.",
        )
    return CustomStrategy(id=sid, fn=custom_fn, delta=_CUSTOM_IDS[sid])


# ---------------------------------------------------------------------------
# Veredito
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StabilityVerdict:
    is_stable: bool
    stability_value: float
    threshold_value: float
    strategy: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_stable": self.is_stable,
            "stability_value": self.stability_value,
            "threshold_value": self.threshold_value,
            "strategy": self.strategy,
        }


def parse_threshold_type(value: Union[str, ThresholdType]) -> ThresholdType:
    if isinstance(value, ThresholdType):
        return value
    try:
        return ThresholdType(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown threshold_type: {value!r}",
            details={"threshold_type": repr(value), "allowed": [t.value for t in ThresholdType]},
        ) from e


def resolve_threshold(
    threshold: float,
    threshold_type: Union[str, ThresholdType],
    history: Sequence[float],
) -> float:
    """Converte o threshold configurado no valor efetivo comparado ao delta."""
    if isinstance(threshold, bool) or not isinstance(threshold, Real) or not math.isfinite(float(threshold)):
        raise ConfigurationError(
            "threshold must be a finite number",
            details={"threshold": repr(threshold)},
        )
    if threshold < 0:
        raise ConfigurationError("threshold must be >= 0", details={"threshold": threshold})

    kind = parse_threshold_type(threshold_type)
    value = float(threshold)
    values = np.asarray(history, dtype=float)

    if kind is ThresholdType.ABSOLUTE:
        return value
    if kind is ThresholdType.RELATIVE:
        return value * max(abs(float(np.mean(values))), EPSILON)
    return value * _sd(values)


def evaluate(
    strategy: Union[str, StrategyId, Strategy],
    history: Sequence[float],
    window: int,
    threshold: float,
    custom_fn: Optional[CustomFn] = None,
    *,
    threshold_type: Union[str, ThresholdType] = ThresholdType.ABSOLUTE,
) -> StabilityVerdict:
    """
    Avalia a estabilidade do histórico.

    Args:
        strategy: identificador (`StrategyId`/str) ou variante já construída.
        history: métricas em ordem de geração.
        window: tamanho da janela final (>= 2).
        threshold: valor configurado de threshold.
        custom_fn: função do usuário para estratégias `custom_*`.
        threshold_type: interpretação do threshold.

    Raises:
        InsufficientDataError: `len(history) < window + 1`.
        UnknownStrategyError: estratégia fora do catálogo.
        InvalidCustomResultError: função custom não retornou escalar.
    """
    if isinstance(strategy, (StatisticStrategy, CohenStrategy, CustomStrategy)):
        resolved = strategy
    else:
        resolved = build_strategy(strategy, custom_fn)

    if isinstance(window, bool) or not isinstance(window, int) or window < 2:
        raise ConfigurationError("window must be an int >= 2", details={"window": repr(window)})

    values = np.asarray(list(history), dtype=float)
    if values.size < window + 1:
        raise InsufficientDataError(
            f"Stability check needs at least window + 1 = {window + 1} values, got {values.size}",
            details={"history_length": int(values.size), "window": window},
        )

    threshold_value = resolve_threshold(threshold, threshold_type, values)
    stability_value = float(resolved.compute(values, window))

    return StabilityVerdict(
        is_stable=bool(stability_value < threshold_value),
        stability_value=stability_value,
        threshold_value=threshold_value,
        strategy=resolved.id.value,
    )
