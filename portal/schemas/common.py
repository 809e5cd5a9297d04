"""
schemas/common.py
-----------------
Helpers shared by the partial-update schemas, and the delete response.
"""

from typing import Any, Iterable

from pydantic import BaseModel


def changes_from(update: BaseModel, non_nullable: Iterable[str] = ()) -> dict[str, Any]:
    """
    Fields the client actually sent. An explicit null is kept (it clears an
    optional column) except for columns that may not be null, where it is
    treated as "leave unchanged".
    """
    changes = update.model_dump(exclude_unset=True)
    for name in non_nullable:
        if changes.get(name, ...) is None:
            changes.pop(name)
    return changes


class DeleteResult(BaseModel):
    """Response of every DELETE endpoint, soft or hard."""
    id: str
    hard: bool
    # Rows removed per kind by a hard delete, e.g. {"users": 3, "grants": 7}
    removed: dict[str, int] = {}
