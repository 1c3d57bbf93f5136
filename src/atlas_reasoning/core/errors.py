"""
Atlas Reasoning — Canonical Error Structures (v1)

Este módulo define o padrão canônico de falhas do Atlas Reasoning.
Falhas de raciocínio são valores de domínio e fazem parte do contrato
operacional do motor, devendo ser:

- explícitas
- serializáveis
- diagnosticáveis
- acionáveis

Nenhum resultado parcial ou degradado substitui silenciosamente
um resultado exato solicitado.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReasoningErrorPayload:
    """
    Payload canônico de falha do Atlas Reasoning.

    Campos:
    - type: código estável da falha (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao chamador (onde corrigir)
    - decision_required: indica que o chamador precisa decidir explicitamente
      (ex.: relaxar restrições, aumentar orçamento de busca)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    decision_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de falha (v1)
# ---------------------------------------------------------------------------

# Inferência
INFERENCE_STALLED = "INFERENCE_STALLED"
CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"

# Restrições / otimização linear
UNSATISFIABLE = "UNSATISFIABLE"
UNBOUNDED_OBJECTIVE = "UNBOUNDED_OBJECTIVE"

# Planejamento
NO_PLAN_FOUND = "NO_PLAN_FOUND"

# Agendamento
CYCLE_DETECTED = "CYCLE_DETECTED"
INFEASIBLE_SCHEDULE = "INFEASIBLE_SCHEDULE"

# Documento compilado
DOCUMENT_INVALID = "DOCUMENT_INVALID"

# Engine / Execução
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
ENGINE_CONFIGURATION_ERROR = "ENGINE_CONFIGURATION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def inference_stalled(
    *,
    iterations: int,
    bound: int,
    last_facts: List[str],
    hint: str = "Revise regras que geram fatos ilimitadamente ou aumente inference.max_iterations explicitamente.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=INFERENCE_STALLED,
        message="Encadeamento para frente excedeu o limite de iterações sem atingir ponto fixo",
        details={
            "iterations": iterations,
            "bound": bound,
            "last_facts": last_facts,
        },
        hint=hint,
        decision_required=False,
    )


def circular_dependency(
    *,
    query: str,
    cycles: List[List[str]],
    hint: str = "Quebre o ciclo de regras ou declare como fato base algum elemento do ciclo.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=CIRCULAR_DEPENDENCY,
        message="Prova por encadeamento para trás depende de si mesma",
        details={
            "query": query,
            "cycles": cycles,
        },
        hint=hint,
        decision_required=False,
    )


def unsatisfiable(
    *,
    conflicting_constraints: List[str],
    conflict_pairs: List[List[str]],
    reason: str,
    nodes: int,
    hint: str = "Relaxe ou remova ao menos uma das restrições conflitantes citadas.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=UNSATISFIABLE,
        message="Nenhuma atribuição satisfaz todas as restrições rígidas",
        details={
            "conflicting_constraints": conflicting_constraints,
            "conflict_pairs": conflict_pairs,
            "reason": reason,
            "nodes": nodes,
        },
        hint=hint,
        decision_required=True,
    )


def unbounded_objective(
    *,
    objective: str,
    sense: str,
    hint: str = "Adicione restrições que limitem as variáveis do objetivo.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=UNBOUNDED_OBJECTIVE,
        message="Função objetivo ilimitada sob as restrições declaradas",
        details={
            "objective": objective,
            "sense": sense,
        },
        hint=hint,
        decision_required=True,
    )


def no_plan_found(
    *,
    reason: str,
    frontier_size: int,
    deepest_state: List[str],
    deepest_depth: int,
    expanded: int,
    hint: str = "Verifique operadores e estado objetivo, ou amplie depth_bound/node_budget explicitamente.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=NO_PLAN_FOUND,
        message="Busca terminou sem alcançar o estado objetivo",
        details={
            "reason": reason,
            "frontier_size": frontier_size,
            "deepest_state": deepest_state,
            "deepest_depth": deepest_depth,
            "expanded": expanded,
        },
        hint=hint,
        decision_required=False,
    )


def cycle_detected(
    *,
    cycle: List[str],
    hint: str = "Remova a dependência circular entre atividades; nenhum cronograma é produzido.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=CYCLE_DETECTED,
        message="Grafo de precedência de atividades contém ciclo",
        details={"cycle": cycle},
        hint=hint,
        decision_required=False,
    )


def infeasible_schedule(
    *,
    conflict: Dict[str, Any],
    hint: str = "Aumente a capacidade do recurso, o horizonte de agendamento ou reduza a demanda da atividade.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=INFEASIBLE_SCHEDULE,
        message="Nenhum posicionamento satisfaz precedência e capacidade de recursos",
        details={"conflict": conflict},
        hint=hint,
        decision_required=True,
    )


def document_invalid(
    *,
    message: str,
    section: Optional[str] = None,
    hint: str = "Corrija a seção indicada do documento compilado.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=DOCUMENT_INVALID,
        message=message,
        details={"section": section},
        hint=hint,
        decision_required=False,
    )


def engine_execution_error(
    *,
    query: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique os eventos da consulta para diagnosticar a falha. Nenhum fallback é aplicado automaticamente.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante a execução da consulta",
        details={
            "query": query,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
        decision_required=False,
    )


def engine_configuration_error(
    *,
    message: str = "Configuração inválida para execução da consulta",
    details: Optional[Dict[str, Any]] = None,
    hint: str = "Revise a configuração do motor e declare explicitamente as opções necessárias.",
) -> ReasoningErrorPayload:
    return ReasoningErrorPayload(
        type=ENGINE_CONFIGURATION_ERROR,
        message=message,
        details=details or {},
        hint=hint,
        decision_required=False,
    )
