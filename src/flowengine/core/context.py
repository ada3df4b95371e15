"""
RunContext: Contexto canônico de execução do flowengine.

Este módulo define o **RunContext**, a estrutura passada ao controlador de
execução adaptativa e aos dispatchers durante uma run.

O RunContext é o **único meio permitido** de:
- registro de logs estruturados de execução
- coleta de warnings não fatais (ex.: max_splits atingido sem estabilidade)
- transporte da identidade da run (run_id, created_at) e da configuração efetiva

Princípios fundamentais:
- Isolamento por execução (cada run possui seu próprio contexto)
- Logs são eventos estruturados, não strings livres
- Nenhum estado global compartilhado

Limites explícitos:
- Não executa unidades
- Não decide critérios de parada
- Não persiste dados automaticamente
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class RunContext:
    """
    Contexto de execução de uma run do controlador.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - meta: metadados livres (ex.: origem, host)
    - events: log estruturado de eventos
    - warnings: warnings por step_id

    Invariantes:
    - Logs sempre incluem `run_id` e `step_id`
    - Warnings são agrupados por `step_id`, em ordem de inserção
    """

    run_id: str
    created_at: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)

    @classmethod
    def create(cls, *, config: Optional[Dict[str, Any]] = None, **meta: Any) -> "RunContext":
        """Cria um contexto novo com run_id aleatório e timestamp UTC."""
        return cls(
            run_id=f"run-{uuid.uuid4().hex[:12]}",
            created_at=datetime.now(timezone.utc),
            config=dict(config or {}),
            meta=dict(meta),
        )

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        if step_id not in self.warnings:
            self.warnings[step_id] = []
        self.warnings[step_id].append(message)

    def events_for(self, step_id: str, *, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Filtra eventos por step_id (e opcionalmente por nível)."""
        return [
            e for e in self.events
            if e.get("step_id") == step_id and (level is None or e.get("level") == level)
        ]
