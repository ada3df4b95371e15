"""
flowengine: Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do flowengine.
Erros são considerados artefatos de domínio e fazem parte do contrato operacional
do controlador de execução, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

Nenhuma recuperação implícita é permitida: o payload descreve a falha, o
chamador decide o que fazer.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .exceptions import (
    BatchExecutionError,
    ConfigurationError,
    FlowException,
    InsufficientDataError,
    InvalidCustomResultError,
    UnknownStrategyError,
)


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FlowErrorPayload:
    """
    Payload canônico de erro do flowengine.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    - decision_required: indica se a execução está bloqueada aguardando decisão humana
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    decision_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        # o chamador deve garantir que details seja serializável
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

EXECUTION_CONFIGURATION_ERROR = "EXECUTION_CONFIGURATION_ERROR"
EXECUTION_UNKNOWN_STRATEGY = "EXECUTION_UNKNOWN_STRATEGY"
EXECUTION_INSUFFICIENT_DATA = "EXECUTION_INSUFFICIENT_DATA"
EXECUTION_INVALID_CUSTOM_RESULT = "EXECUTION_INVALID_CUSTOM_RESULT"
EXECUTION_BATCH_FAILED = "EXECUTION_BATCH_FAILED"
EXECUTION_UNEXPECTED_ERROR = "EXECUTION_UNEXPECTED_ERROR"

_CODES_BY_EXCEPTION = (
    # subclasses antes das bases
    (UnknownStrategyError, EXECUTION_UNKNOWN_STRATEGY),
    (ConfigurationError, EXECUTION_CONFIGURATION_ERROR),
    (InsufficientDataError, EXECUTION_INSUFFICIENT_DATA),
    (InvalidCustomResultError, EXECUTION_INVALID_CUSTOM_RESULT),
    (BatchExecutionError, EXECUTION_BATCH_FAILED),
)


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def unit_cardinality_error(
    *,
    units_per_invocation: int,
    splitter: Optional[str] = None,
    hint: str = "Use um splitter que produza exatamente uma unidade por invocação (ex.: random) na execução adaptativa.",
) -> FlowErrorPayload:
    return FlowErrorPayload(
        type=EXECUTION_CONFIGURATION_ERROR,
        message="Execução adaptativa requer exatamente uma unidade por invocação do splitter",
        details={
            "units_per_invocation": units_per_invocation,
            "splitter": splitter,
        },
        hint=hint,
        decision_required=False,
    )


def unknown_strategy(
    *,
    strategy: str,
    allowed: List[str],
    hint: str = "Escolha uma estratégia de estabilidade do catálogo ou use custom_absolute/custom_relative.",
) -> FlowErrorPayload:
    return FlowErrorPayload(
        type=EXECUTION_UNKNOWN_STRATEGY,
        message="Estratégia de estabilidade desconhecida",
        details={"strategy": strategy, "allowed": allowed},
        hint=hint,
        decision_required=False,
    )


def batch_failed(
    *,
    iteration: Optional[int],
    failed_units: List[Dict[str, Any]],
    backend: Optional[str] = None,
    hint: str = "Inspecione os logs dos jobs que falharam. Nenhum resultado parcial é aceito e nenhum retry é aplicado por padrão.",
) -> FlowErrorPayload:
    return FlowErrorPayload(
        type=EXECUTION_BATCH_FAILED,
        message="Falha na execução de um batch de unidades",
        details={
            "iteration": iteration,
            "failed_units": failed_units,
            "backend": backend,
        },
        hint=hint,
        decision_required=False,
    )


def exception_to_payload(exc: BaseException) -> FlowErrorPayload:
    """Converte exceções em FlowErrorPayload (serializável, acionável).

    Regras:
    - FlowException: já vem com message/details/hint/decision_required;
      o código vem do catálogo pela classe.
    - Outras exceções: encapsular como EXECUTION_UNEXPECTED_ERROR sem expor stack trace.
    """
    if isinstance(exc, FlowException):
        code = EXECUTION_UNEXPECTED_ERROR
        for cls, mapped in _CODES_BY_EXCEPTION:
            if isinstance(exc, cls):
                code = mapped
                break
        return FlowErrorPayload(
            type=code,
            message=exc.message or "Erro de execução",
            details=dict(exc.details or {}),
            hint=exc.hint,
            decision_required=bool(exc.decision_required),
        )

    return FlowErrorPayload(
        type=EXECUTION_UNEXPECTED_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details={"exception_class": exc.__class__.__name__},
        hint="Verifique o log estruturado da run e a configuração de execução",
        decision_required=False,
    )
