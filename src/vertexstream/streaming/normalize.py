"""Default-filling for candidates in a raw response body."""

from __future__ import annotations

from typing import Any

from ..constants import MODEL_ROLE


def fill_candidate_defaults(response: dict[str, Any]) -> dict[str, Any]:
    """Fill the candidate fields the backend may leave out.

    For every candidate: a missing ``index`` becomes its position in the
    list, a missing ``content`` becomes an empty object and a missing
    ``content.role`` becomes the model role. Values already present are
    never touched. The dict is updated in place and returned.
    """
    candidates = response.get("candidates")
    if not candidates:
        return response

    for position, candidate in enumerate(candidates):
        if candidate.get("index") is None:
            candidate["index"] = position
        if candidate.get("content") is None:
            candidate["content"] = {}
        if candidate["content"].get("role") is None:
            candidate["content"]["role"] = MODEL_ROLE

    return response
