"""Document store access for the chat pipeline.

The pipeline only reads. Two implementations share one small interface:
- MongoDocumentStore: pymongo against the site's MongoDB
- InMemoryDocumentStore: dict-backed, used by tests and local demos

Filters use the Mongo subset the resolver needs:
    {"field": "value"}
    {"field": {"$regex": "^marina$", "$options": "i"}}
    {"$or": [{...}, {...}]}
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from portfolio_agent.errors import UpstreamError

logger = logging.getLogger(__name__)

Filter = Dict[str, Any]
Sort = Sequence[Tuple[str, int]]

DESCENDING = -1


class DocumentStore:
    """Read-only interface over named collections."""

    def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        projection: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        sort: Optional[Sort] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def find_one(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        projection: Optional[Sequence[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        results = self.find(collection, filter, projection=projection, limit=1)
        return results[0] if results else None


class MongoDocumentStore(DocumentStore):
    """pymongo-backed store. Provider errors surface as UpstreamError."""

    def __init__(self, uri: str, database: str, client: Optional[MongoClient] = None):
        self._client = client or MongoClient(uri)
        self._db = self._client[database]

    def find(self, collection, filter=None, projection=None, limit=None, sort=None):
        try:
            cursor = self._db[collection].find(filter or {}, _mongo_projection(projection))
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return [_stringify_id(doc) for doc in cursor]
        except PyMongoError as e:
            logger.error(f"MongoDB find failed on {collection}: {e}", exc_info=True)
            raise UpstreamError("Document store query failed", provider="mongodb", details=str(e)) from e

    def find_one(self, collection, filter=None, projection=None):
        try:
            doc = self._db[collection].find_one(filter or {}, _mongo_projection(projection))
        except PyMongoError as e:
            logger.error(f"MongoDB find_one failed on {collection}: {e}", exc_info=True)
            raise UpstreamError("Document store query failed", provider="mongodb", details=str(e)) from e
        return _stringify_id(doc) if doc else None

    def close(self) -> None:
        self._client.close()


def _mongo_projection(projection: Optional[Sequence[str]]) -> Optional[Dict[str, int]]:
    if not projection:
        return None
    return {field: 1 for field in projection}


def _stringify_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if doc and "_id" in doc and doc["_id"] is not None:
        doc["_id"] = str(doc["_id"])
    return doc


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store that evaluates the same filter subset as MongoDB.

    Natural order is insertion order, like an unsorted Mongo scan.
    """

    def __init__(self, collections: Optional[Dict[str, Iterable[Dict[str, Any]]]] = None):
        self._collections: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(doc) for doc in docs] for name, docs in (collections or {}).items()
        }
        self.queries: List[Tuple[str, Optional[Filter]]] = []

    def insert(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(doc)
        self._collections.setdefault(collection, []).append(stored)
        return stored

    def find(self, collection, filter=None, projection=None, limit=None, sort=None):
        self.queries.append((collection, filter))
        docs = [doc for doc in self._collections.get(collection, []) if _matches(doc, filter or {})]
        if sort:
            # Apply keys right-to-left so the first sort key wins (stable sort)
            for field, direction in reversed(list(sort)):
                docs.sort(key=lambda d: _sort_key(d.get(field)), reverse=direction == DESCENDING)
        if limit:
            docs = docs[:limit]
        return [_project(doc, projection) for doc in docs]


def _sort_key(value: Any) -> Tuple[int, Any]:
    # None sorts first, as in MongoDB
    if value is None:
        return (0, "")
    return (1, value)


def _project(doc: Dict[str, Any], projection: Optional[Sequence[str]]) -> Dict[str, Any]:
    if not projection:
        return dict(doc)
    fields = set(projection) | {"_id"}
    return {key: value for key, value in doc.items() if key in fields}


def _matches(doc: Dict[str, Any], filter: Filter) -> bool:
    for key, condition in filter.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in condition):
                return False
            continue
        if not _field_matches(doc.get(key), condition):
            return False
    return True


def _field_matches(value: Any, condition: Any) -> bool:
    if isinstance(condition, re.Pattern):
        return isinstance(value, str) and condition.search(value) is not None
    if isinstance(condition, dict) and "$regex" in condition:
        flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
        return isinstance(value, str) and re.search(condition["$regex"], value, flags) is not None
    return value == condition
