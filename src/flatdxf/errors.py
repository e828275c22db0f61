from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .document import Document


class FlatDxfError(Exception):
    pass


class DxfReadError(FlatDxfError, ValueError):
    """Fatal parse failure.

    ``document`` holds whatever was built before the failure so callers can
    still inspect a partially read drawing.
    """

    def __init__(self, message: str, *, document: "Document | None" = None) -> None:
        super().__init__(message)
        self.document = document


class MalformedStream(DxfReadError):
    def __init__(self, line: int, message: str | None = None) -> None:
        if message is None:
            message = (
                f"Invalid DXF file: DXF code is not an integer at line {line}. "
                "Is this a binary file?"
            )
        super().__init__(message)
        self.line = line


class EntityDiscarded(FlatDxfError):
    """Raised while decoding a paper space entity that is being ignored."""


class UnsupportedEntityKind(FlatDxfError):
    def __init__(self, entity_type: Any) -> None:
        super().__init__(f"unsupported entity type: {entity_type}")
        self.entity_type = entity_type


class UnresolvedReference(FlatDxfError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"unresolved {kind} reference: {name!r}")
        self.kind = kind
        self.name = name


class DocumentStateError(FlatDxfError, RuntimeError):
    pass
