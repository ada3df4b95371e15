"""
Catálogo fechado de modelos do workflow de referência.

Modelos suportados, parâmetros padrão e a política de seed ficam centralizados
e explícitos, sem discovery dinâmico:

    - lm  → LinearRegression
    - glm → LogisticRegression
    - rf  → RandomForestRegressor
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LinearRegression, LogisticRegression

from flowengine.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class ModelSpec:
    """Especificação canônica de um modelo do catálogo."""

    model_id: str
    estimator_cls: Type[Any]
    default_params: Dict[str, Any] = field(default_factory=dict)

    def build(self, overrides: Optional[Dict[str, Any]] = None, *, seed: Optional[int] = None) -> Any:
        """Instancia o estimador com default_params + overrides (sem treinar).

        Quando o estimador aceita `random_state` e ele não foi informado,
        a seed da unidade é usada.
        """
        params = dict(self.default_params)
        if overrides:
            params.update(overrides)
        estimator = self.estimator_cls(**params)
        if seed is not None and "random_state" not in params and "random_state" in estimator.get_params():
            estimator.set_params(random_state=seed)
        return estimator


_CATALOG: Dict[str, ModelSpec] = {
    "lm": ModelSpec(model_id="lm", estimator_cls=LinearRegression),
    "glm": ModelSpec(model_id="glm", estimator_cls=LogisticRegression, default_params={"max_iter": 1000}),
    "rf": ModelSpec(
        model_id="rf",
        estimator_cls=RandomForestRegressor,
        default_params={"n_estimators": 100, "n_jobs": 1},
    ),
}


def list_models() -> List[str]:
    return sorted(_CATALOG)


def get_model(model_id: str) -> ModelSpec:
    if model_id not in _CATALOG:
        raise ConfigurationError(
            f"Unknown model: {model_id!r}",
            details={"model": repr(model_id), "allowed": list_models()},
        )
    return _CATALOG[model_id]


def build_model(model_id: str, overrides: Optional[Dict[str, Any]] = None, *, seed: Optional[int] = None) -> Any:
    try:
        return get_model(model_id).build(overrides, seed=seed)
    except TypeError as e:
        raise ConfigurationError(f"Invalid params for model '{model_id}': {e}") from e
