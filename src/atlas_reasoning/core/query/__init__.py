"""Atlas Reasoning — Query (core).

Contexto isolado por consulta (log estruturado + warnings) e tipos
canônicos de resultado.
"""

from .context import QueryContext  # noqa: F401
from .types import QueryKind, QueryResult, QueryStatus  # noqa: F401
