# src/atlas_reasoning/core/query/context.py
"""
Contexto de execução de uma consulta ao motor de raciocínio.

Este módulo define o `QueryContext`, a estrutura canônica criada a cada
chamada do `ReasoningEngine` e passada explicitamente aos componentes.

O QueryContext atua como o único meio permitido de:
    - registro de logs estruturados de execução (eventos)
    - coleta de warnings não fatais associados a uma fase da consulta
    - acesso à configuração efetiva da chamada

Princípios fundamentais:
    - Isolamento por chamada (cada consulta possui seu próprio contexto)
    - Nenhum estado é retido no Engine entre chamadas
    - Eventos são dados, não texto livre em stdout

Invariantes:
    - Logs sempre incluem `query_id` e `step_id`
    - Warnings são agrupados por `step_id`

Limites explícitos:
    - Não executa componentes
    - Não persiste eventos automaticamente

Este módulo existe para garantir isolamento, diagnóstico
e rastreabilidade de consultas concorrentes sobre documentos distintos.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class QueryContext:
    """
    Contexto de execução isolado de uma consulta.

    Campos canônicos:
    - query_id: identificador único da consulta
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + overrides)
    - meta: metadados livres do chamador (ex.: origem do documento)
    - events: log estruturado de eventos
    - warnings: warnings por step_id
    """

    query_id: str
    created_at: datetime
    config: Dict[str, Any]
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)

    @classmethod
    def new(cls, *, config: Dict[str, Any], meta: Optional[Dict[str, Any]] = None) -> "QueryContext":
        """Cria um contexto novo com identificador e timestamp próprios."""
        return cls(
            query_id=f"q-{uuid.uuid4().hex[:12]}",
            created_at=datetime.now(timezone.utc),
            config=config,
            meta=dict(meta or {}),
        )

    # -----------------------------
    # Config
    # -----------------------------
    def section(self, name: str) -> Dict[str, Any]:
        """Retorna a seção `name` da configuração (dict vazio se ausente)."""
        value = (self.config or {}).get(name, {}) or {}
        return dict(value) if isinstance(value, dict) else {}

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "query_id": self.query_id,
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

    def all_warnings(self) -> List[str]:
        """Warnings de todas as fases, na ordem de registro por fase."""
        out: List[str] = []
        for step_id in self.warnings:
            out.extend(self.warnings[step_id])
        return out
