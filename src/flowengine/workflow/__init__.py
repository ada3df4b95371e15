"""Workflow de referência por split (Unit Evaluator baseado em scikit-learn)."""

from .evaluations import EVALUATIONS, EvalInput, run_evaluations
from .evaluator import WorkflowEvaluator
from .models import build_model, list_models
from .splits import CrossValidationSplitter, RandomSplitter, Split, build_splitter

__all__ = [
    "EVALUATIONS",
    "CrossValidationSplitter",
    "EvalInput",
    "RandomSplitter",
    "Split",
    "WorkflowEvaluator",
    "build_model",
    "build_splitter",
    "list_models",
    "run_evaluations",
]
