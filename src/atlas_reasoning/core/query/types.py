# src/atlas_reasoning/core/query/types.py
"""
Tipos canônicos de consulta do Atlas Reasoning.

Este módulo define as estruturas e enums que padronizam a comunicação
entre o chamador externo e o `ReasoningEngine`.

Componentes principais:
    - QueryKind   → enum das operações de topo (infer, solve, plan, ...)
    - QueryStatus → enum de estados finais (SUCCESS, FAILED)
    - QueryResult → estrutura imutável de resultado de uma consulta

Princípios fundamentais:
    - Tipos são estáveis e serializáveis (exceto `value`, o objeto de domínio)
    - Nenhuma lógica de raciocínio vive neste módulo

Invariantes:
    - Enums possuem valores textuais canônicos
    - QueryResult é imutável
    - Uma consulta FAILED sempre carrega `payload["error"]`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QueryKind(str, Enum):
    """
    Operações de topo expostas pelo motor.

    Os valores são strings para facilitar serialização e inspeção.

    Tipos definidos:
        - INFER: derivação/prova sobre fatos e regras
        - SOLVE: satisfação de restrições (CSP)
        - PLAN: planejamento por busca em espaço de estados
        - SCHEDULE: cronograma de atividades (CPM + recursos + objetivo)
        - SIMULATE: simulação Monte Carlo de duração do projeto
        - SENSITIVITY: análise de sensibilidade de durações
        - EVALUATE: análise de decisão (árvore + registro de riscos)
    """
    INFER = "infer"
    SOLVE = "solve"
    PLAN = "plan"
    SCHEDULE = "schedule"
    SIMULATE = "simulate"
    SENSITIVITY = "sensitivity"
    EVALUATE = "evaluate"


class QueryStatus(str, Enum):
    """
    Estados finais possíveis de uma consulta.

    Estados definidos:
        - SUCCESS: resultado exato produzido
        - FAILED: falha tipada (valor) ou erro estrutural convertido em payload
    """
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class QueryResult:
    """
    Resultado imutável de uma consulta ao motor.

    Campos:
        - query_id: identificador único da consulta
        - kind: operação executada
        - status: estado final
        - summary: resumo textual curto
        - metrics: métricas numéricas (nós expandidos, iterações, makespan, ...)
        - warnings: avisos não fatais gerados durante a execução
        - events: log estruturado de eventos da consulta
        - payload: representação serializável do resultado (ou `{"error": ...}`)
        - value: objeto de domínio retornado pelo componente (sucesso ou falha-valor)
    """
    query_id: str
    kind: QueryKind
    status: QueryStatus
    summary: str
    metrics: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    payload: Dict[str, Any] = field(default_factory=dict)
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status == QueryStatus.SUCCESS

    @property
    def error(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("error")
