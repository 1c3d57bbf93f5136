"""Hashing canônico do documento compilado.

O hash identifica o documento avaliado por uma consulta (métricas do
QueryResult) e permite detectar divergência entre execuções.

Decisão: mesma serialização canônica do hash de configuração. Valores não
serializáveis (ex.: callables de restrição) entram por `repr`.
"""

from __future__ import annotations

from typing import Any, Dict

from atlas_reasoning.core.config.hashing import canonical_json, sha256_hex


def compute_document_hash(document: Dict[str, Any]) -> str:
    """Computa SHA-256 do documento em formato canônico."""
    return sha256_hex(canonical_json(document, default=repr))
