"""
flowengine: Exceções canônicas (v1)

Este módulo define as exceções tipadas do controlador de execução adaptativa.

Objetivo:
- Permitir que controlador, dispatchers e estratégias levantem exceções
  semânticas tipadas
- Facilitar o mapeamento determinístico para FlowErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Taxonomia:
- ConfigurationError: configuração inválida (cardinalidade de unidades,
  estratégia desconhecida, threshold inválido). Fatal, antes do loop.
- InsufficientDataError: histórico menor que `window + 1` (defensivo).
- BatchExecutionError: qualquer falha de unidade/job dentro de um batch.
- InvalidCustomResultError: função de estabilidade custom retornou não-escalar.

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Nenhuma exceção é silenciada pelo controlador; todas sobem ao chamador.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(eq=False)
class FlowException(Exception):
    """Base class para exceções internas do flowengine.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana

    Não é frozen: instâncias precisam atravessar pickle (workers joblib).
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuração
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ConfigurationError(FlowException):
    """Configuração inválida ou inconsistente para execução."""


@dataclass(eq=False)
class UnknownStrategyError(ConfigurationError):
    """Identificador de estratégia de estabilidade não pertence ao catálogo."""


# ---------------------------------------------------------------------------
# Estabilidade
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class InsufficientDataError(FlowException):
    """Histórico de métricas menor que `window + 1`."""


@dataclass(eq=False)
class InvalidCustomResultError(FlowException):
    """Função de estabilidade fornecida pelo usuário não retornou um número."""


# ---------------------------------------------------------------------------
# Execução
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class BatchExecutionError(FlowException):
    """Falha de uma ou mais unidades de um batch (aborta a run inteira)."""
