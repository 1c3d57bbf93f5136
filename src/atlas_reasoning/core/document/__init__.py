"""Atlas Reasoning — Documento compilado (core).

Componentes canônicos do documento compilado v1:
 - parsing (YAML/JSON)
 - validação estrutural (seções case-insensitive)
 - hashing canônico (rastreabilidade)
"""

from .errors import (  # noqa: F401
    DocumentError,
    DocumentFileNotFoundError,
    DocumentParseError,
    DocumentPathMissingError,
    DocumentValidationError,
    UnsupportedDocumentFormatError,
)

from .hashing import compute_document_hash  # noqa: F401
from .loader import coerce_document, load_document  # noqa: F401
from .schema import SECTIONS, CompiledDocument, validate_document  # noqa: F401
