"""
Factory de execução: mapeamento fechado `execution.type` → controlador.

    adaptive_output_sequential       → AdaptiveController + SequentialDispatcher
    adaptive_output_multicore        → AdaptiveController + ParallelDispatcher(MulticoreBackend)
    adaptive_output_slurm            → AdaptiveController + ParallelDispatcher(SlurmBackend)
    adaptive_input_scalar_sequential → ScalarSearchController

Não existe registro global mutável: novos tipos exigem alteração explícita
deste módulo.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from flowengine.core.config.loader import load_config
from flowengine.core.context import RunContext
from flowengine.core.exceptions import ConfigurationError

from .backends import MulticoreBackend, SlurmBackend
from .controller import AdaptiveController
from .dispatch import ParallelDispatcher, SequentialDispatcher
from .output import ExecutionOutput
from .params import ExecutionParams, ExecutionType, ScalarSearchParams, resolve_params
from .scalar_search import ScalarSearchController

Controller = Union[AdaptiveController, ScalarSearchController]


def _dispatcher_for(params: ExecutionParams, evaluator: Any):
    b = params.backend
    if params.execution_type is ExecutionType.ADAPTIVE_OUTPUT_SEQUENTIAL:
        return SequentialDispatcher(evaluator)

    if params.execution_type is ExecutionType.ADAPTIVE_OUTPUT_MULTICORE:
        backend = MulticoreBackend(
            registry_folder=b["registry_folder"],
            ncpus=b["ncpus"],
            joblib_backend=b["joblib_backend"],
            seed=b["seed"],
        )
    else:
        backend = SlurmBackend(
            registry_folder=b["registry_folder"],
            slurm_template=b["slurm_template"],
            resources=b["resources"],
            submit_command=b["submit_command"],
            status_command=b["status_command"],
            poll_interval=b["poll_interval"],
            seed=b["seed"],
        )
    return ParallelDispatcher(
        evaluator,
        backend,
        max_retries=params.max_retries,
        timeout_seconds=params.timeout_seconds,
    )


def build_execution(
    execution: Mapping[str, Any],
    evaluator: Any,
    ctx: Optional[RunContext] = None,
) -> Controller:
    """
    Constrói o controlador a partir da seção `execution` da configuração.

    Args:
        execution: `{"type": ..., "params": {...}}`.
        evaluator: Unit Evaluator (`evaluate(config, seed)`).
        ctx: RunContext opcional (criado quando ausente).

    Raises:
        ConfigurationError: seção inválida, tipo desconhecido ou parâmetro inválido.
    """
    if not isinstance(execution, Mapping) or "type" not in execution:
        raise ConfigurationError(
            "Missing execution.type",
            details={"execution": repr(execution)},
            hint="Declare `execution.type` na configuração.",
        )
    params = resolve_params(execution["type"], execution.get("params"))

    if isinstance(params, ScalarSearchParams):
        return ScalarSearchController(evaluator=evaluator, params=params, ctx=ctx)

    return AdaptiveController(
        evaluator=evaluator,
        dispatcher=_dispatcher_for(params, evaluator),
        params=params,
        ctx=ctx,
    )


def run_execution(
    config: Mapping[str, Any],
    evaluator: Any,
    ctx: Optional[RunContext] = None,
) -> ExecutionOutput:
    """Executa a partir de uma configuração completa (`execution:` + `unit:`)."""
    ctx = ctx or RunContext.create(config=dict(config))
    controller = build_execution(config.get("execution", {}), evaluator, ctx)
    return controller.run(config.get("unit") or {})


def load_execution_config(path: str, local_path: Optional[str] = None) -> Dict[str, Any]:
    """Carrega a configuração (YAML/JSON) e exige a seção `execution`."""
    config = load_config(defaults_path=path, local_path=local_path)
    if not isinstance(config.get("execution"), dict):
        raise ConfigurationError(
            "Configuration file has no `execution` section",
            details={"path": path},
        )
    return config
