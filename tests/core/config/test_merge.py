# tests/core/config/test_merge.py
"""
Testes das políticas de merge de configuração.

Os testes asseguram que:
- `deep_merge` sobrescreve escalares, mescla dicts e substitui listas
- conflitos de tipo são rejeitados explicitamente
- `merge_with_defaults` herda defaults e rejeita chaves desconhecidas
- nenhum input é mutado

Limites explícitos:
    - Não valida carregamento de arquivos
    - Não valida semântica dos parâmetros de execução
"""

import pytest

try:
    from flowengine.core.config.merge import deep_merge, merge_with_defaults
    from flowengine.core.config.errors import ConfigTypeConflictError
    from flowengine.core.exceptions import ConfigurationError
except Exception as e:  # noqa: BLE001
    deep_merge = None
    merge_with_defaults = None
    ConfigTypeConflictError = None
    ConfigurationError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """Falha explicitamente quando o módulo de merge não pode ser importado."""
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing merge module. Implement:\n"
            "- src/flowengine/core/config/merge.py (deep_merge, merge_with_defaults)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_merge_simple_override():
    """
    Verifica o override básico de valores escalares no deep-merge.

    Invariantes:
        - O valor sobrescrito reflete exatamente o override
        - `base` e `override` não sofrem mutação
    """
    _require_imports()
    base = {"a": 1, "b": 2}
    override = {"b": 99}
    out = deep_merge(base, override)
    assert out == {"a": 1, "b": 99}
    assert base == {"a": 1, "b": 2}
    assert override == {"b": 99}


def test_merge_nested_dict():
    _require_imports()
    base = {"execution": {"params": {"window": 3, "threshold": 0.2}}}
    override = {"execution": {"params": {"threshold": 0.1}}}
    out = deep_merge(base, override)
    assert out == {"execution": {"params": {"window": 3, "threshold": 0.1}}}


def test_merge_list_is_replaced():
    _require_imports()
    out = deep_merge({"cmd": ["sbatch", "--hold"]}, {"cmd": ["bash"]})
    assert out == {"cmd": ["bash"]}


def test_merge_type_conflict_raises():
    """
    Verifica que conflitos estruturais de tipo são erro fatal.

    Decisões arquiteturais:
        - dict vs escalar não possui resolução implícita
        - int → float é um alargamento permitido
    """
    _require_imports()
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"a": {"x": 1}}, {"a": 1})
    assert deep_merge({"a": 1}, {"a": 0.5}) == {"a": 0.5}


def test_merge_none_base_accepts_any_override():
    _require_imports()
    assert deep_merge({"timeout_seconds": None}, {"timeout_seconds": 30}) == {"timeout_seconds": 30}


def test_merge_with_defaults_inherits_and_overrides():
    _require_imports()
    defaults = {"window": 3, "threshold": 0.2, "timeout_seconds": None}
    out = merge_with_defaults({"threshold": 0.05}, defaults)
    assert out == {"window": 3, "threshold": 0.05, "timeout_seconds": None}
    assert defaults["threshold"] == 0.2


def test_merge_with_defaults_rejects_unknown_keys():
    """
    Verifica que parâmetros desconhecidos são rejeitados.

    Invariantes:
        - A exceção lista as chaves desconhecidas e as permitidas
    """
    _require_imports()
    with pytest.raises(ConfigurationError) as exc:
        merge_with_defaults({"windw": 4}, {"window": 3})
    assert exc.value.details["unknown"] == ["windw"]
    assert exc.value.details["allowed"] == ["window"]


def test_merge_with_defaults_keeps_callables_by_identity():
    _require_imports()

    def fn(values):
        return 0.0

    out = merge_with_defaults({"stability_fn": fn}, {"stability_fn": None})
    assert out["stability_fn"] is fn
