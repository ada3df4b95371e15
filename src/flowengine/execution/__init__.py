"""
Controlador de execução adaptativa orientado a convergência.

Componentes:
    - seeds         → Seed Sequencer
    - stability     → Stability Evaluator
    - dispatch      → Batch Dispatcher (sequencial / paralelo)
    - backends      → worker pools (joblib multicore, cluster Slurm)
    - controller    → Control Loop
    - output        → Result Reconstructor
    - scalar_search → busca escalar adaptativa
    - factory       → mapeamento fechado `execution.type` → controlador
"""

from .controller import AdaptiveController, LoopState
from .dispatch import ParallelDispatcher, SequentialDispatcher
from .factory import build_execution, load_execution_config, run_execution
from .output import ExecutionOutput, build_execution_output
from .params import ExecutionParams, ExecutionType, ScalarSearchParams, resolve_params
from .scalar_search import ScalarSearchController
from .seeds import next_seeds
from .stability import StabilityVerdict, StrategyId, ThresholdType, evaluate
from .types import TerminationReason, UnitConfig, UnitResult

__all__ = [
    "AdaptiveController",
    "ExecutionOutput",
    "ExecutionParams",
    "ExecutionType",
    "LoopState",
    "ParallelDispatcher",
    "ScalarSearchController",
    "ScalarSearchParams",
    "SequentialDispatcher",
    "StabilityVerdict",
    "StrategyId",
    "TerminationReason",
    "ThresholdType",
    "UnitConfig",
    "UnitResult",
    "build_execution",
    "build_execution_output",
    "evaluate",
    "load_execution_config",
    "next_seeds",
    "resolve_params",
    "run_execution",
]
