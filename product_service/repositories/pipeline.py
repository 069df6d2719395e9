"""Declarative building blocks for aggregation pipelines.

A filter is declared as a tuple of ``Clause`` objects. ``build_match`` folds the
clauses over a parameter mapping and produces one ``$match`` document; clauses
whose parameter is absent, or whose value cannot be coerced, contribute nothing.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from bson import ObjectId

from product_service.schemas.common import to_object_id

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


# --- coercions: return None when the value is unusable ---

def as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN never reaches the store
    return number if number == number else None


def as_int(value: Any) -> Optional[int]:
    number = as_float(value)
    return int(number) if number is not None else None


def as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def as_object_id(value: Any) -> Optional[ObjectId]:
    return to_object_id(value)


def as_object_id_list(value: Any) -> Optional[List[ObjectId]]:
    """Comma-separated ids; unparseable entries are dropped."""
    parts = value.split(",") if isinstance(value, str) else list(value)
    ids = [oid for oid in (to_object_id(str(part).strip()) for part in parts) if oid is not None]
    return ids or None


def as_upper(value: Any) -> Optional[str]:
    text = as_str(value)
    return text.upper() if text else None


# --- comparisons: build the condition for one field ---

def _contains(value: str) -> dict:
    return {"$regex": re.escape(value), "$options": "i"}


def _in_stock(value: bool) -> dict:
    return {"$gt": 0} if value else {"$lte": 0}


def _not_expired(value: bool) -> Optional[dict]:
    return {"$gte": datetime.now(timezone.utc)} if value else None


COMPARISONS: Dict[str, Callable[[Any], Optional[Any]]] = {
    "eq": lambda value: value,
    "contains": _contains,
    "gte": lambda value: {"$gte": value},
    "lte": lambda value: {"$lte": value},
    "in": lambda value: {"$in": list(value)},
    "in_stock": _in_stock,
    "not_expired": _not_expired,
}


@dataclass(frozen=True)
class Clause:
    param: str
    field: str
    coerce: Callable[[Any], Any]
    comparison: str = "eq"

    def condition(self, raw: Any) -> Optional[Any]:
        value = self.coerce(raw)
        if value is None:
            return None
        return COMPARISONS[self.comparison](value)


def _is_operator_doc(condition: Any) -> bool:
    return isinstance(condition, dict) and bool(condition) and all(key.startswith("$") for key in condition)


def _merge(match: dict, field: str, condition: Any) -> dict:
    existing = match.get(field)
    if existing is None:
        return {**match, field: condition}
    if _is_operator_doc(existing) and _is_operator_doc(condition) and not existing.keys() & condition.keys():
        return {**match, field: {**existing, **condition}}
    # colliding bounds on one field are kept side by side
    extra = {"$and": [*match.get("$and", []), {field: condition}]}
    return {**match, **extra}


def build_match(clauses: Iterable[Clause], params: Mapping[str, Any]) -> dict:
    match: dict = {}
    for clause in clauses:
        raw = params.get(clause.param)
        if raw is None or raw == "":
            continue
        condition = clause.condition(raw)
        if condition is None:
            continue
        match = _merge(match, clause.field, condition)
    return match


def match_stage(clauses: Iterable[Clause], params: Mapping[str, Any]) -> List[dict]:
    """Zero or one ``$match`` stage, so callers can splice it with ``*``."""
    match = build_match(clauses, params)
    return [{"$match": match}] if match else []


def sort_stage(
    sort_by: Optional[str],
    sort_order: Optional[str],
    fields: Mapping[str, str],
    default: Sequence[tuple] = (("createdAt", -1),),
) -> dict:
    field = fields.get(sort_by or "")
    if field is None:
        spec = dict(default)
    else:
        spec = {field: 1 if (sort_order or "desc").lower() == "asc" else -1}
    # _id tiebreak keeps pages disjoint when sort keys repeat
    spec.setdefault("_id", next(iter(spec.values())))
    return {"$sort": spec}


def facet_stages(page: int, limit: int, projection: Optional[dict] = None) -> List[dict]:
    """Page slice and total count computed in one pass over the same sorted input."""
    items: List[dict] = [{"$skip": (page - 1) * limit}, {"$limit": limit}]
    if projection:
        items.append({"$project": projection})
    return [{"$facet": {"items": items, "total": [{"$count": "count"}]}}]


def unpack_facet(results: List[dict]) -> dict:
    """Normalize a ``facet_stages`` result to ``{"items": [...], "total": n}``."""
    if not results:
        return {"items": [], "total": 0}
    bucket = results[0]
    counts = bucket.get("total") or []
    return {"items": bucket.get("items") or [], "total": counts[0]["count"] if counts else 0}
