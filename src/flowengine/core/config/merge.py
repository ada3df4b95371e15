# src/flowengine/core/config/merge.py
"""
Utilitários canônicos de merge de configuração.

Duas políticas convivem neste módulo:

1. `deep_merge`: resolução de arquivos (defaults + override local):
    - dict → merge recursivo por chave
    - list → sobrescrita total (sem merge elemento a elemento)
    - escalar → sobrescrita direta
    - conflito de tipos → `ConfigTypeConflictError`

2. `merge_with_defaults`: resolução de parâmetros de um tipo de execução:
    - chaves ausentes herdam o default
    - chaves presentes sobrescrevem o default (raso, sem recursão)
    - chaves desconhecidas são rejeitadas (`ConfigurationError`)
    - valores `None` explícitos são preservados (ex.: timeout desligado)

Invariantes:
    - Nenhum input é mutado
    - A mesma entrada sempre produz a mesma saída
"""

from copy import deepcopy
from typing import Any, Dict, Mapping, Optional

from flowengine.core.exceptions import ConfigurationError

from .errors import ConfigTypeConflictError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Realiza um deep-merge determinístico entre dois dicionários de configuração.

    Args:
        base (Dict[str, Any]): Configuração base (ex.: defaults).
        override (Dict[str, Any]): Overrides explícitos da configuração.

    Returns:
        Dict[str, Any]: Nova configuração resultante do deep-merge.

    Raises:
        ConfigTypeConflictError: Se ocorrer conflito de tipo entre base e override.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )

    result: Dict[str, Any] = deepcopy(base)

    for key, override_value in override.items():
        if key not in result:
            result[key] = deepcopy(override_value)
            continue

        base_value = result[key]

        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
            continue

        if isinstance(override_value, list):
            result[key] = deepcopy(override_value)
            continue

        # None no base aceita qualquer override; int -> float é alargamento permitido
        if base_value is not None and type(base_value) is not type(override_value):
            if not (isinstance(base_value, int) and isinstance(override_value, float)):
                raise ConfigTypeConflictError(
                    f"Conflito de tipo na chave '{key}': "
                    f"{type(base_value).__name__} vs {type(override_value).__name__}"
                )

        result[key] = deepcopy(override_value)

    return result


def merge_with_defaults(
    params: Optional[Mapping[str, Any]],
    defaults: Mapping[str, Any],
    *,
    section: str = "execution.params",
) -> Dict[str, Any]:
    """
    Combina parâmetros informados pelo usuário com os defaults de um tipo de execução.

    Diferente de `deep_merge`, esta política é rasa e fechada: o conjunto de
    chaves válidas é exatamente o conjunto de chaves dos defaults. Callables
    (ex.: função de estabilidade custom) não são copiados.

    Args:
        params: Parâmetros informados (pode ser None).
        defaults: Parâmetros default do tipo de execução.
        section: Nome da seção, usado apenas na mensagem de erro.

    Returns:
        Dict[str, Any]: Parâmetros resolvidos.

    Raises:
        ConfigurationError: Se houver chave desconhecida.
    """
    params = dict(params or {})
    unknown = sorted(k for k in params if k not in defaults)
    if unknown:
        raise ConfigurationError(
            f"Unknown parameter(s) in {section}: {', '.join(unknown)}",
            details={"unknown": unknown, "allowed": sorted(defaults.keys()), "section": section},
            hint="Remova as chaves desconhecidas ou verifique o tipo de execução selecionado.",
        )

    resolved: Dict[str, Any] = {}
    for key, default_value in defaults.items():
        value = params.get(key, default_value)
        resolved[key] = value if callable(value) else deepcopy(value)
    return resolved
