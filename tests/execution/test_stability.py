# tests/execution/test_stability.py
"""
Testes do avaliador de estabilidade.

Este módulo valida o catálogo fechado de estratégias e o contrato do
veredito (`is_stable`, `stability_value`, `threshold_value`, `strategy`).

Os testes asseguram que:
- as estatísticas globais e de janela seguem as definições (sd amostral,
  MAD normal-consistente, cv = sd/mean)
- deltas absolutos e relativos são calculados corretamente
- a fronteira do threshold é estrita
- Cohen's d retorna +inf sem falhar quando não há histórico anterior suficiente
- funções custom inválidas, estratégias desconhecidas e histórico curto
  são erros tipados
- os três tipos de threshold produzem o `threshold_value` esperado

Limites explícitos:
    - Não valida quando a checagem ocorre (responsabilidade do controlador)
"""

import math

import numpy as np
import pytest

from flowengine.core.errors import EXECUTION_UNKNOWN_STRATEGY, exception_to_payload, unknown_strategy
from flowengine.core.exceptions import (
    ConfigurationError,
    InsufficientDataError,
    InvalidCustomResultError,
    UnknownStrategyError,
)
from flowengine.execution.stability import (
    CohenStrategy,
    CustomStrategy,
    StatisticStrategy,
    StrategyId,
    ThresholdType,
    allowed_strategies,
    build_strategy,
    evaluate,
    resolve_threshold,
)


def test_scenario_mean_absolute_stable():
    """
    [1,1,1,1,1,2], janela 3, threshold 0.5.

    global = 7/6, janela = 4/3 → delta = 1/6 ≈ 0.167 < 0.5 → estável.
    """
    v = evaluate("mean_absolute", [1, 1, 1, 1, 1, 2], 3, 0.5)
    assert v.stability_value == pytest.approx(1 / 6)
    assert v.threshold_value == 0.5
    assert v.is_stable is True
    assert v.strategy == "mean_absolute"


def test_scenario_cv_relative_constant_history():
    v = evaluate("cv_relative", [10, 10, 10, 10], 2, 0.1)
    assert v.stability_value == 0.0
    assert v.is_stable is True


def test_threshold_boundary_is_strict():
    history = [1, 1, 1, 1, 1, 2]
    value = evaluate("mean_absolute", history, 3, 1.0).stability_value
    assert evaluate("mean_absolute", history, 3, value).is_stable is False
    assert evaluate("mean_absolute", history, 3, value + 1e-12).is_stable is True


def test_mean_relative():
    v = evaluate(StrategyId.MEAN_RELATIVE, [1, 1, 1, 1, 1, 2], 3, 0.5)
    assert v.stability_value == pytest.approx(1 / 7)


def test_sd_absolute_uses_sample_sd():
    v = evaluate("sd_absolute", [1, 2, 3, 4, 5], 3, 1.0)
    assert v.stability_value == pytest.approx(math.sqrt(2.5) - 1.0)


def test_mad_absolute_is_robust_to_outlier():
    v = evaluate("mad_absolute", [1, 2, 3, 4, 100], 3, 0.1)
    assert v.stability_value == pytest.approx(0.0)
    assert v.is_stable is True


def test_cohen_needs_two_values_before_window():
    v = evaluate("cohen_absolute", [1.0, 2.0, 3.0, 4.0], 3, 0.2)
    assert v.stability_value == math.inf
    assert v.is_stable is False


def test_cohen_effect_size():
    """
    janela [4,4,4] vs resto [1,3,1,3]:
    d = |4 - 2| / sqrt((0 + 4/3) / 2).
    """
    v = evaluate("cohen_absolute", [1, 3, 1, 3, 4, 4, 4], 3, 0.2)
    assert v.stability_value == pytest.approx(2.0 / math.sqrt(2.0 / 3.0))
    assert v.is_stable is False


def test_cohen_constant_history_is_stable():
    v = evaluate("cohen_absolute", [2.0] * 6, 3, 0.2)
    assert v.stability_value == 0.0
    assert v.is_stable is True


def test_custom_strategy():
    v = evaluate("custom_absolute", [1, 2, 3, 4, 5], 2, 0.5, custom_fn=np.max)
    assert v.stability_value == 0.0
    assert v.strategy == "custom_absolute"

    v = evaluate("custom_relative", [2, 2, 2, 4, 4], 2, 0.5, custom_fn=np.min)
    assert v.stability_value == pytest.approx(1.0)


@pytest.mark.parametrize("bad", [lambda v: [1.0, 2.0], lambda v: "x", lambda v: None, lambda v: float("nan")])
def test_custom_non_scalar_result(bad):
    with pytest.raises(InvalidCustomResultError):
        evaluate("custom_absolute", [1, 2, 3, 4], 2, 0.5, custom_fn=bad)


def test_custom_without_function_is_configuration_error():
    with pytest.raises(ConfigurationError):
        build_strategy("custom_relative")


def test_unknown_strategy():
    """
    Estratégia fora do catálogo carrega o payload canônico `unknown_strategy`.
    """
    with pytest.raises(UnknownStrategyError) as exc:
        evaluate("median_absolute", [1, 2, 3, 4], 2, 0.5)

    expected = unknown_strategy(strategy="median_absolute", allowed=allowed_strategies())
    assert exc.value.details == expected.details
    assert exc.value.hint == expected.hint
    assert exception_to_payload(exc.value).type == EXECUTION_UNKNOWN_STRATEGY


def test_insufficient_data():
    with pytest.raises(InsufficientDataError):
        evaluate("mean_absolute", [1, 2, 3], 3, 0.5)


def test_invalid_window():
    with pytest.raises(ConfigurationError):
        evaluate("mean_absolute", [1, 2, 3], 1, 0.5)


def test_build_strategy_variants():
    assert isinstance(build_strategy("sd_relative"), StatisticStrategy)
    assert isinstance(build_strategy("cohen_absolute"), CohenStrategy)
    assert isinstance(build_strategy("custom_absolute", np.mean), CustomStrategy)


def test_threshold_types():
    history = [1, 1, 1, 1, 1, 2]
    assert resolve_threshold(0.1, "absolute", history) == 0.1
    assert resolve_threshold(0.1, ThresholdType.RELATIVE, history) == pytest.approx(0.1 * 7 / 6)
    assert resolve_threshold(2.0, "derived_from_sd", history) == pytest.approx(2.0 * float(np.std(history, ddof=1)))

    v = evaluate("mean_absolute", history, 3, 0.1, threshold_type="relative")
    assert v.threshold_value == pytest.approx(0.1 * 7 / 6)
    assert v.is_stable is False


def test_invalid_threshold():
    with pytest.raises(ConfigurationError):
        resolve_threshold(-0.1, "absolute", [1, 2])
    with pytest.raises(ConfigurationError):
        resolve_threshold(0.1, "percent", [1, 2])
    with pytest.raises(ConfigurationError):
        resolve_threshold(True, "absolute", [1, 2])  # type: ignore[arg-type]


def test_verdict_to_dict():
    v = evaluate("mean_absolute", [1, 1, 1, 1], 2, 0.5)
    assert v.to_dict() == {
        "is_stable": True,
        "stability_value": 0.0,
        "threshold_value": 0.5,
        "strategy": "mean_absolute",
    }
