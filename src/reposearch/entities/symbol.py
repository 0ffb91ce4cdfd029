"""Symbol entity - a named structural element found inside a chunk."""

from enum import Enum

from pydantic import BaseModel, Field


class SymbolKind(str, Enum):
    """Kinds of structural units the chunkers recognise."""

    FUNCTION = "function"
    CLASS = "class"
    VARIABLE = "variable"
    IMPORT = "import"
    ELEMENT = "element"
    ATTRIBUTE = "attribute"


class SymbolLocation(BaseModel):
    """1-based line span with 0-based columns."""

    line: int = Field(..., ge=1)
    column: int = Field(default=0, ge=0)
    end_line: int = Field(..., ge=1)
    end_column: int = Field(default=0, ge=0)


class Symbol(BaseModel):
    """A named structural unit (function, class, element, ...) inside a chunk.

    ``chunk_id`` is a back-reference only; symbols are removed together with
    their chunk.
    """

    name: str
    kind: SymbolKind
    location: SymbolLocation
    context: str = ""
    chunk_id: str | None = None
