"""
Question -> structured answer glue.

Turning free text into a QueryDescriptor is delegated to an injected
``QueryResolver`` (an LLM call in production, a stub in tests). The
assistant only decides whether a question is an ERP question, resolves
it and runs the query engine against the current snapshot.
"""
import re
from typing import Any, Dict, Protocol

from erp_core import query_engine
from erp_core.models import Intent, QueryDescriptor
from erp_core.observability import get_logger
from erp_core.snapshot_store import SnapshotStore

logger = get_logger(__name__)

_ERP_QUESTION_RE = re.compile(
    r"(sales order|\bSO-|\bSOs?\b|customer|amount|total|revenue|gp rate|gross profit|division|sales rep)",
    re.IGNORECASE,
)


def is_erp_question(question: str) -> bool:
    """Cheap keyword check for questions about sales orders."""
    return bool(question and _ERP_QUESTION_RE.search(question))


class QueryResolver(Protocol):
    """Maps a free-text question to a QueryDescriptor."""

    async def resolve(self, question: str) -> QueryDescriptor:
        ...


class SalesAssistant:
    """Answers questions against the snapshot owned by ``store``."""

    def __init__(self, store: SnapshotStore, resolver: QueryResolver):
        self.store = store
        self.resolver = resolver

    async def ask(self, question: str) -> Dict[str, Any]:
        """
        Resolve and answer a question.

        Returns:
            ``{"type": "general", ...}`` for non-ERP questions, otherwise
            ``{"type": "erp", "descriptor": ..., "result": ...}``
        """
        if not is_erp_question(question):
            return {"type": "general", "question": question}

        descriptor = await self.resolver.resolve(question)
        if descriptor.intent is Intent.GENERAL:
            return {"type": "general", "question": question}

        result = query_engine.answer(descriptor, self.store.snapshot())
        logger.info(
            f"Answered question with intent {descriptor.intent.value}",
            extra={"matched": result["matched"]}
        )
        return {"type": "erp", "descriptor": descriptor, "result": result}
