# tests/conftest.py
"""
Fixtures compartilhados para testes do flowengine.

Este módulo define fixtures reutilizáveis que fornecem:
- contexto de execução controlado (RunContext)
- Unit Evaluators determinísticos (stubs) para o controlador
- datasets pequenos e determinísticos para o workflow de referência
- conteúdo YAML de configuração para o loader

Decisões arquiteturais:
    - Stubs são classes de nível de módulo (picklable por referência),
      para atravessar joblib e a serialização de jobs de cluster
    - A métrica de cada stub é função apenas da seed (determinismo)
    - Imports do core são realizados de forma lazy nos fixtures

Invariantes:
    - Nenhuma fixture executa o controlador
    - Dados retornados são determinísticos e isolados

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica de domínio
"""

from datetime import datetime, timezone

import numpy as np
import pandas as pd
import pytest

from flowengine.execution.types import UnitResult


# =====================================================
# Unit Evaluators determinísticos
# =====================================================

def _result(value: float, seed: int) -> UnitResult:
    return UnitResult(
        metrics={"eval_mse": {"mse": float(value)}},
        split={"seed": seed},
        payload={"seed": seed},
    )


class ConstantEvaluator:
    """Sempre a mesma métrica (converge na primeira checagem)."""

    def __init__(self, value: float = 1.0):
        self.value = value

    def evaluate(self, config, seed):
        return _result(self.value, seed)


class NoisyEvaluator:
    """Métrica pseudo-aleatória derivada apenas da seed."""

    def evaluate(self, config, seed):
        return _result(float((seed * 37) % 11), seed)


class RecordingEvaluator:
    """Registra as seeds avaliadas e falha nas seeds configuradas."""

    def __init__(self, fail_seeds=()):
        self.fail_seeds = set(fail_seeds)
        self.calls = []

    def evaluate(self, config, seed):
        self.calls.append(seed)
        if seed in self.fail_seeds:
            raise RuntimeError(f"unit failed for seed {seed}")
        return _result(float(seed % 5), seed)


class FlakyEvaluator:
    """Falha na primeira avaliação de cada seed configurada; depois sucede."""

    def __init__(self, flaky_seeds=()):
        self.flaky_seeds = set(flaky_seeds)
        self.seen = set()

    def evaluate(self, config, seed):
        first = seed not in self.seen
        self.seen.add(seed)
        if first and seed in self.flaky_seeds:
            raise RuntimeError(f"transient failure for seed {seed}")
        return _result(1.0, seed)


class MultiUnitEvaluator(ConstantEvaluator):
    """Simula um splitter que produz várias unidades por invocação (ex.: cv)."""

    splitter_name = "cv"

    def __init__(self, units: int = 5):
        super().__init__(1.0)
        self.units = units

    def units_per_invocation(self):
        return self.units


class ParamCurveEvaluator:
    """mse = (x - optimum)^2, com x lido em config['train']['params']['n_estimators']."""

    def __init__(self, optimum: float = 30.0):
        self.optimum = optimum
        self.seeds = []

    def evaluate(self, config, seed):
        self.seeds.append(seed)
        x = config["train"]["params"]["n_estimators"]
        return _result((x - self.optimum) ** 2, seed)


# =====================================================
# Fixtures
# =====================================================

@pytest.fixture
def dummy_ctx():
    """
    RunContext determinístico para testes.

    `run_id` e `created_at` são fixos; o contexto inicia sem eventos
    nem warnings.
    """
    from flowengine.core.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        config={},
        meta={"source": "pytest"},
    )


@pytest.fixture
def evaluators():
    """Namespace com as classes de stub (instanciadas pelos testes)."""

    class _NS:
        Constant = ConstantEvaluator
        Noisy = NoisyEvaluator
        Recording = RecordingEvaluator
        Flaky = FlakyEvaluator
        MultiUnit = MultiUnitEvaluator
        ParamCurve = ParamCurveEvaluator

    return _NS


@pytest.fixture
def regression_df() -> pd.DataFrame:
    """
    Dataset pequeno de regressão com atributo protegido binário.

    y = 2*x1 - x2 + 0.5*group + ruído (seed fixa).
    """
    rng = np.random.default_rng(0)
    n = 60
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    group = np.tile([0, 1], n // 2)
    y = 2.0 * x1 - x2 + 0.5 * group + rng.normal(scale=0.1, size=n)
    return pd.DataFrame({"x1": x1, "x2": x2, "group": group, "y": y})


@pytest.fixture
def execution_defaults_yaml() -> str:
    """YAML de configuração base (defaults) com seções `execution` e `unit`."""
    return """\
execution:
  type: adaptive_output_sequential
  params:
    metric_name: mse
    metric_source: eval_mse
    stability_strategy: mean_absolute
    threshold: 0.5
    window: 3
    min_splits: 5
    max_splits: 20
unit:
  train:
    model: lm
"""


@pytest.fixture
def execution_local_yaml() -> str:
    """YAML de overrides locais."""
    return """\
execution:
  params:
    threshold: 0.25
    max_splits: 8
"""
