# tests/execution/test_factory.py
"""
Testes da factory de execução (`execution.type` → controlador).

Inclui a execução ponta a ponta a partir de um arquivo YAML
(defaults + overrides locais) com o workflow de referência.
"""

import pytest

from flowengine.core.exceptions import ConfigurationError
from flowengine.execution import build_execution, load_execution_config, run_execution
from flowengine.execution.backends import MulticoreBackend, SlurmBackend
from flowengine.execution.controller import AdaptiveController
from flowengine.execution.dispatch import ParallelDispatcher, SequentialDispatcher
from flowengine.execution.scalar_search import ScalarSearchController
from flowengine.execution.types import TerminationReason
from flowengine.workflow import WorkflowEvaluator


def test_sequential_type(evaluators):
    ctl = build_execution({"type": "adaptive_output_sequential"}, evaluators.Constant())
    assert isinstance(ctl, AdaptiveController)
    assert isinstance(ctl.dispatcher, SequentialDispatcher)
    assert ctl.batch_size == 1


def test_multicore_type(evaluators, tmp_path):
    ctl = build_execution(
        {
            "type": "adaptive_output_multicore",
            "params": {"registry_folder": str(tmp_path / "reg"), "ncpus": 2, "n_splits_per_iteration": 4},
        },
        evaluators.Constant(),
    )
    assert isinstance(ctl.dispatcher, ParallelDispatcher)
    assert isinstance(ctl.dispatcher.backend, MulticoreBackend)
    assert ctl.dispatcher.name == "multicore"
    assert ctl.batch_size == 4


def test_slurm_type(evaluators, tmp_path):
    ctl = build_execution(
        {
            "type": "adaptive_output_slurm",
            "params": {"registry_folder": str(tmp_path / "reg"), "max_retries": 2, "timeout_seconds": 60},
        },
        evaluators.Constant(),
    )
    assert isinstance(ctl.dispatcher.backend, SlurmBackend)
    assert ctl.dispatcher.max_retries == 2
    assert ctl.dispatcher.timeout_seconds == 60


def test_scalar_type(evaluators):
    ctl = build_execution(
        {"type": "adaptive_input_scalar_sequential", "params": {"param_path": "train.params.n_estimators"}},
        evaluators.ParamCurve(),
    )
    assert isinstance(ctl, ScalarSearchController)


@pytest.mark.parametrize("execution", [{}, {"params": {}}, None, {"type": "adaptive_output_gpu"}])
def test_invalid_execution_section(execution, evaluators):
    with pytest.raises(ConfigurationError):
        build_execution(execution, evaluators.Constant())


def test_run_execution_with_stub(evaluators, dummy_ctx):
    config = {
        "execution": {"type": "adaptive_output_sequential", "params": {"min_splits": 4, "max_splits": 6}},
        "unit": {"train": {"model": "lm"}},
    }
    out = run_execution(config, evaluators.Constant(), dummy_ctx)
    assert out.termination_reason is TerminationReason.STABLE
    assert out.execution_type == "adaptive_output_sequential"
    assert dummy_ctx.events


def test_end_to_end_from_yaml(tmp_path, regression_df, execution_defaults_yaml, execution_local_yaml):
    defaults = tmp_path / "execution.yaml"
    local = tmp_path / "execution.local.yaml"
    defaults.write_text(execution_defaults_yaml, encoding="utf-8")
    local.write_text(execution_local_yaml, encoding="utf-8")

    config = load_execution_config(str(defaults), str(local))
    assert config["execution"]["params"]["threshold"] == 0.25
    assert config["execution"]["params"]["window"] == 3

    evaluator = WorkflowEvaluator(regression_df, target="y", features=["x1", "x2"])
    out = run_execution(config, evaluator)

    assert 5 <= out.n_units <= 8
    assert out.split_output["split_type"] == "random"
    assert out.used_seeds["split_1"] == 1001
    first = out.units["split_1"].result
    assert first.payload["model"] == "lm"
    assert first["eval_mse"]["mse"] >= 0.0


def test_config_without_execution_section(tmp_path):
    path = tmp_path / "other.yaml"
    path.write_text("unit:\n  train:\n    model: lm\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_execution_config(str(path))
