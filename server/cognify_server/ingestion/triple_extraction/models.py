"""
Pydantic models for triple extraction responses.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from cognify_server.core.models import Triple


class TripleList(BaseModel):
    """Triples parsed from one model response."""

    triples: List[Triple] = Field(default_factory=list)
    discarded: int = Field(
        default=0,
        description="Items dropped for missing or empty subject/predicate/object"
    )
    parse_stage: Optional[str] = Field(
        default=None,
        description="JSON repair stage that produced the payload"
    )

    @classmethod
    def from_payload(cls, payload: Any, parse_stage: Optional[str] = None) -> "TripleList":
        """
        Build from parsed model JSON.

        Accepts a bare array of triples or an object wrapping them under
        ``triples``. A single triple object is treated as a one-item array.
        """
        if isinstance(payload, dict):
            if "triples" in payload:
                payload = payload["triples"]
            else:
                payload = [payload]
        if not isinstance(payload, list):
            return cls(triples=[], discarded=0, parse_stage=parse_stage)

        triples: List[Triple] = []
        discarded = 0
        for item in payload:
            triple = _coerce_triple(item)
            if triple is None:
                discarded += 1
            else:
                triples.append(triple)
        return cls(triples=triples, discarded=discarded, parse_stage=parse_stage)


def _coerce_triple(item: Any) -> Optional[Triple]:
    if not isinstance(item, dict):
        return None
    values = []
    for key in ("subject", "predicate", "object"):
        value = item.get(key)
        if value is None or isinstance(value, (dict, list)):
            return None
        value = str(value).strip()
        if not value:
            return None
        values.append(value)
    subject, predicate, obj = values
    return Triple(subject=subject, predicate=predicate, object=obj)
