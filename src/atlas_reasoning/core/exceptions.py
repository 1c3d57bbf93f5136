"""
Atlas Reasoning — Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Atlas Reasoning.

Objetivo:
- Permitir que componentes levantem exceções semânticas tipadas para
  falhas estruturais (fatais), distintas das falhas-valor de busca
- Facilitar o mapeamento determinístico para ReasoningErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Regras:
- Exceções devem carregar apenas dados estruturados (serializáveis).
- Falhas de busca (UNSATISFIABLE, NO_PLAN_FOUND, ...) NÃO são exceções:
  são valores retornados ao chamador.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ReasoningException(Exception):
    """Base class para exceções internas do Atlas Reasoning.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    # código estável usado pelo Engine ao converter em payload
    error_type: str = "ENGINE_EXECUTION_ERROR"

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Estrutura de entrada
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MalformedTerm(ReasoningException):
    """Fato, literal ou regra com forma textual/estrutural inválida."""

    error_type: str = "DOCUMENT_INVALID"


@dataclass(frozen=True)
class InvalidExpression(ReasoningException):
    """Expressão de restrição fora da linguagem restrita suportada."""

    error_type: str = "DOCUMENT_INVALID"


@dataclass(frozen=True)
class DocumentInvalid(ReasoningException):
    """Documento compilado estruturalmente inválido."""

    error_type: str = "DOCUMENT_INVALID"


# ---------------------------------------------------------------------------
# Agendamento
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CycleDetected(ReasoningException):
    """Ciclo no grafo de precedência de atividades (fatal, sem cronograma)."""

    error_type: str = "CYCLE_DETECTED"


@dataclass(frozen=True)
class UnknownActivity(ReasoningException):
    """Precedência referencia atividade inexistente."""

    error_type: str = "DOCUMENT_INVALID"


# ---------------------------------------------------------------------------
# Engine / Configuração
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineConfigurationError(ReasoningException):
    """Configuração inválida ou inconsistente para execução."""

    error_type: str = "ENGINE_CONFIGURATION_ERROR"


@dataclass(frozen=True)
class EngineExecutionError(ReasoningException):
    """Erro inesperado durante execução do Engine (encapsulado)."""

    error_type: str = "ENGINE_EXECUTION_ERROR"
