"""
WorkflowEvaluator: Unit Evaluator de referência (split → treino → avaliação).

`evaluate(config, seed)` executa uma unidade completa:

    1. split do dataset com a seed da unidade (usa o primeiro split)
    2. treino do modelo do catálogo (`config["train"]`)
    3. predição no conjunto de teste
    4. avaliações declaradas (`config["evaluations"]`)

Config da unidade (todas as chaves opcionais; ausentes herdam do construtor):

    train:
      model: rf
      params: {n_estimators: 50}
    evaluations: [eval_mse, eval_summarystats]
    protected_attributes: [group]

O evaluator é picklable (DataFrame + objetos simples), portanto roda em
workers joblib e em jobs de cluster.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from flowengine.core.exceptions import ConfigurationError
from flowengine.execution.types import UnitResult

from .evaluations import EvalInput, run_evaluations
from .models import build_model
from .splits import RandomSplitter


class WorkflowEvaluator:
    def __init__(
        self,
        data: pd.DataFrame,
        *,
        target: str,
        features: Optional[Sequence[str]] = None,
        splitter: Any = None,
        model: str = "lm",
        model_params: Optional[Dict[str, Any]] = None,
        evaluations: Sequence[str] = ("eval_mse",),
        protected_attributes: Sequence[str] = (),
    ):
        if target not in data.columns:
            raise ConfigurationError(f"Target column not found: {target}", details={"target": target})
        self.data = data.reset_index(drop=True)
        self.target = target
        self.features = list(features) if features is not None else [c for c in data.columns if c != target]
        missing = [c for c in self.features if c not in data.columns]
        if missing:
            raise ConfigurationError(f"Feature column(s) not found: {', '.join(missing)}", details={"missing": missing})
        self.splitter = splitter or RandomSplitter()
        self.model = model
        self.model_params = dict(model_params or {})
        self.evaluations = list(evaluations)
        self.protected_attributes = list(protected_attributes)

    @property
    def splitter_name(self) -> str:
        return getattr(self.splitter, "name", type(self.splitter).__name__)

    def units_per_invocation(self) -> int:
        return int(self.splitter.units_per_invocation())

    def _resolve(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        train = config.get("train") or {}
        params = dict(self.model_params)
        params.update(train.get("params") or {})
        evaluations: List[str] = list(config.get("evaluations") or self.evaluations)
        protected: List[str] = list(config.get("protected_attributes") or self.protected_attributes)
        return {
            "model": train.get("model", self.model),
            "params": params,
            "evaluations": evaluations,
            "protected_attributes": protected,
        }

    def evaluate(self, config: Mapping[str, Any], seed: int) -> UnitResult:
        cfg = self._resolve(config or {})
        split = self.splitter.split(self.data, seed)[0]

        train = self.data.iloc[split.train_index]
        test = self.data.iloc[split.test_index]

        estimator = build_model(cfg["model"], cfg["params"], seed=seed)
        estimator.fit(train[self.features], train[self.target])
        predictions = estimator.predict(test[self.features])

        metrics = run_evaluations(
            cfg["evaluations"],
            EvalInput(
                y_true=test[self.target].to_numpy(),
                predictions=predictions,
                test_data=test,
                protected_attributes=cfg["protected_attributes"],
            ),
        )

        return UnitResult(
            metrics=metrics,
            split=split.to_dict(),
            payload={
                "model": cfg["model"],
                "params": cfg["params"],
                "n_train": len(split.train_index),
                "n_test": len(split.test_index),
                "seed": seed,
            },
        )
