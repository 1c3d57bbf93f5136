# src/atlas_reasoning/__init__.py
"""
Atlas Reasoning — motor de raciocínio determinístico sobre documentos compilados.

Este pacote raiz define o namespace público do Atlas Reasoning. O motor
recebe um documento compilado (seções FACTS, RULES, CONSTRAINTS,
OPERATORS, ACTIVITIES, DECISION_TREE, ...) e responde consultas de
inferência, satisfação de restrições, planejamento, agendamento e decisão.

Arquitetura em alto nível:
    - core.config     → carregamento, merge e hashing de configuração
    - core.document   → parsing, validação e hashing do documento compilado
    - core.query      → contexto por consulta (eventos + warnings) e tipos de resultado
    - core.engine     → dispatch de consultas e conversão de falhas em payload
    - knowledge       → fatos, regras, encadeamento para frente e para trás
    - constraints     → CSP (backtracking + propagação) e programação linear
    - planning        → operadores STRIPS, heurísticas e estratégias de busca
    - scheduling      → CPM, alocação de recursos, objetivo, Monte Carlo, sensibilidade
    - decision        → árvores de decisão e registro de riscos

Limites explícitos:
    - Não compila texto livre em documento (o documento já chega compilado)
    - Não persiste resultados nem estado entre consultas
"""

from .core.engine import ReasoningEngine
from .core.query import QueryKind, QueryResult, QueryStatus

__all__ = ["ReasoningEngine", "QueryKind", "QueryResult", "QueryStatus"]
