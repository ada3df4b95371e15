# tests/execution/test_dispatch_multicore.py
"""
Testes do dispatcher paralelo sobre o backend multicore (joblib).

A maioria dos testes usa o backend `threading` do joblib (sem custo de
processos); um teste exercita `loky` com o evaluator de referência, que é
picklable por referência ao pacote instalado.
"""

import pytest

from flowengine.core.exceptions import BatchExecutionError
from flowengine.execution.backends import MulticoreBackend
from flowengine.execution.backends.base import job_rng_seed, run_unit
from flowengine.execution.dispatch import ParallelDispatcher
from flowengine.execution.types import UnitConfig, UnitResult
from flowengine.workflow import WorkflowEvaluator


def _units(seeds):
    return [UnitConfig(unit_id=f"split_{i}", seed=s) for i, s in enumerate(seeds, start=1)]


def _backend(tmp_path, **kw):
    return MulticoreBackend(registry_folder=str(tmp_path / "registry"), ncpus=2, joblib_backend="threading", **kw)


def test_results_keyed_by_unit_id(tmp_path, evaluators):
    dispatcher = ParallelDispatcher(evaluators.Recording(), _backend(tmp_path))
    out = dispatcher.run_batch(_units([21, 22, 23, 24]), iteration=1)

    assert list(out) == ["split_1", "split_2", "split_3", "split_4"]
    assert [out[k]["eval_mse"]["mse"] for k in out] == [float(s % 5) for s in (21, 22, 23, 24)]
    assert (tmp_path / "registry" / "iter_1").is_dir()


def test_job_failure_aborts_whole_batch(tmp_path, evaluators):
    """
    Uma unidade falha → o batch inteiro falha, sem resultado parcial.

    Invariantes:
        - Todas as falhas são reportadas juntas
        - Nenhuma retentativa por padrão
    """
    ev = evaluators.Recording(fail_seeds={22, 24})
    dispatcher = ParallelDispatcher(ev, _backend(tmp_path))
    with pytest.raises(BatchExecutionError) as exc:
        dispatcher.run_batch(_units([21, 22, 23, 24]), iteration=2)

    failed = exc.value.details["failed_units"]
    assert sorted(f["unit_id"] for f in failed) == ["split_2", "split_4"]
    assert all(f["error_type"] == "RuntimeError" for f in failed)
    assert exc.value.details["backend"] == "multicore"
    assert sorted(ev.calls) == [21, 22, 23, 24]


def test_retry_resubmits_only_failed_units(tmp_path, evaluators, dummy_ctx):
    ev = evaluators.Flaky(flaky_seeds={32})
    dispatcher = ParallelDispatcher(ev, _backend(tmp_path), max_retries=1)
    out = dispatcher.run_batch(_units([31, 32, 33]), iteration=1, ctx=dummy_ctx)

    assert list(out) == ["split_1", "split_2", "split_3"]
    retries = dummy_ctx.events_for("execution.dispatch", level="warning")
    assert len(retries) == 1
    assert retries[0]["failed_units"] == ["split_2"]
    assert (tmp_path / "registry" / "iter_1" / "attempt_1").is_dir()


def test_retry_exhausted_raises(tmp_path, evaluators):
    ev = evaluators.Recording(fail_seeds={41})
    dispatcher = ParallelDispatcher(ev, _backend(tmp_path), max_retries=2)
    with pytest.raises(BatchExecutionError):
        dispatcher.run_batch(_units([41]), iteration=1)
    assert ev.calls == [41, 41, 41]


def test_reset_removes_registry(tmp_path, evaluators):
    dispatcher = ParallelDispatcher(evaluators.Constant(), _backend(tmp_path))
    dispatcher.run_batch(_units([1]), iteration=1)
    assert (tmp_path / "registry").exists()
    dispatcher.reset()
    assert not (tmp_path / "registry").exists()


def test_loky_backend_with_reference_evaluator(tmp_path, regression_df):
    evaluator = WorkflowEvaluator(regression_df, target="y", features=["x1", "x2"])
    backend = MulticoreBackend(registry_folder=str(tmp_path / "reg"), ncpus=2, joblib_backend="loky", seed=123)
    out = ParallelDispatcher(evaluator, backend).run_batch(_units([101, 102]), iteration=1)

    assert set(out) == {"split_1", "split_2"}
    for result in out.values():
        assert isinstance(result, UnitResult)
        assert result["eval_mse"]["mse"] >= 0.0


def test_job_rng_seed_derivation():
    assert job_rng_seed(None, 1, 1) is None
    assert job_rng_seed(123, 1, 1) == 125
    assert job_rng_seed(123, 2, 3) == 128
    assert job_rng_seed(2**32 - 1, 0, 1) == 0


def test_run_unit_converts_failure_into_outcome(evaluators):
    outcome = run_unit(evaluators.Recording(fail_seeds={5}), UnitConfig(unit_id="split_1", seed=5))
    assert outcome.ok is False
    assert outcome.error_type == "RuntimeError"
    assert outcome.failure_details()["unit_id"] == "split_1"
