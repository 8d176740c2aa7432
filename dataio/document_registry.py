# dataio/document_registry.py
"""
Registry that hands out stable identity tokens for open spectrum documents.

Undo histories are keyed by these tokens instead of by the documents
themselves, and the registry only keeps weak references, so a document is
never kept alive just because some undo history still mentions it.
"""
from __future__ import annotations

import itertools
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class DocumentToken:
    """Opaque identity of a registered document.

    Two tokens are equal only if they were issued for the same document;
    the label is for display and takes no part in comparisons.
    """

    serial: int
    label: str = field(default="", compare=False)

    def __str__(self) -> str:
        return f"{self.label or 'document'}#{self.serial}"


class DocumentRegistry:
    """Issues one DocumentToken per live document object."""

    def __init__(self):
        self._serials = itertools.count(1)
        self._refs: Dict[DocumentToken, weakref.ref] = {}
        # id(document) -> token; only valid while the document is alive
        self._tokens_by_id: Dict[int, DocumentToken] = {}

    def register(self, document: Any, label: Optional[str] = None) -> DocumentToken:
        """Return the token for *document*, issuing a new one on first sight."""
        if document is None:
            raise ValueError("cannot register a null document")
        existing = self.token_for(document)
        if existing is not None:
            return existing

        if label is None:
            label = str(getattr(document, "filename", "") or type(document).__name__)
        token = DocumentToken(next(self._serials), label)
        doc_id = id(document)

        def _released(_ref, token=token, doc_id=doc_id):
            # ids can be reused after collection; drop the mapping right away
            if self._tokens_by_id.get(doc_id) == token:
                del self._tokens_by_id[doc_id]
            logger.debug("Document %s released", token)

        self._refs[token] = weakref.ref(document, _released)
        self._tokens_by_id[doc_id] = token
        logger.debug("Registered document %s", token)
        return token

    def token_for(self, document: Any) -> Optional[DocumentToken]:
        if document is None:
            return None
        token = self._tokens_by_id.get(id(document))
        if token is None:
            return None
        # guard against id reuse by a different object
        if self.lookup(token) is not document:
            return None
        return token

    def lookup(self, token: Optional[DocumentToken]) -> Optional[Any]:
        if token is None:
            return None
        ref = self._refs.get(token)
        return ref() if ref is not None else None

    def is_alive(self, token: Optional[DocumentToken]) -> bool:
        return self.lookup(token) is not None

    def forget(self, token: DocumentToken) -> None:
        """Drop *token*; later lookups report the document as gone."""
        ref = self._refs.pop(token, None)
        if ref is None:
            return
        doc = ref()
        if doc is not None and self._tokens_by_id.get(id(doc)) == token:
            del self._tokens_by_id[id(doc)]

    def __len__(self) -> int:
        return sum(1 for ref in self._refs.values() if ref() is not None)
