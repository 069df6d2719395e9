import re
from typing import Any, List, Optional

from product_service.models import Category
from product_service.repositories.base import BaseRepository
from product_service.repositories.pipeline import (
    Clause,
    as_bool,
    facet_stages,
    match_stage,
    unpack_facet,
)
from product_service.schemas.common import to_object_id

FILTER_CLAUSES = (
    Clause("isActive", "isActive", as_bool),
)

TREE_FIELDS = ("_id", "name", "description", "parentCategory", "ancestors", "isActive", "createdAt", "updatedAt")


def build_tree(root: dict, descendants: List[dict]) -> dict:
    """Nest ``descendants`` under ``root`` by parentCategory; leaves carry no ``children`` key."""
    by_parent: dict = {}
    for category in descendants:
        by_parent.setdefault(str(category.get("parentCategory")), []).append(category)

    def attach(category: dict, seen: frozenset) -> dict:
        node = {field: category.get(field) for field in TREE_FIELDS}
        key = str(category["_id"])
        children = [attach(child, seen | {key}) for child in by_parent.get(key, []) if str(child["_id"]) not in seen]
        if children:
            node["children"] = children
        return node

    return attach(root, frozenset())


class CategoryRepository(BaseRepository):
    collection_name = Category.COLLECTION
    not_found_code = "CATEGORY_NOT_FOUND"
    entity_name = "Category"

    async def find_by_name(self, name: str) -> Optional[dict]:
        return await self.find_one({"name": name})

    @staticmethod
    def build_search_pipeline(filters: dict, page: int, limit: int) -> List[dict]:
        stages = match_stage(FILTER_CLAUSES, filters)
        match = stages[0]["$match"] if stages else {}
        parent = filters.get("parentCategory")
        if parent == "null":
            match["parentCategory"] = None
        elif to_object_id(parent) is not None:
            match["parentCategory"] = to_object_id(parent)
        if filters.get("q"):
            pattern = {"$regex": re.escape(filters["q"]), "$options": "i"}
            match["$or"] = [{"name": pattern}, {"description": pattern}]
        pipeline = [{"$match": match}] if match else []
        return [*pipeline, {"$sort": {"name": 1, "_id": 1}}, *facet_stages(page, limit)]

    async def search(self, filters: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.category.search") as span:
            pipeline = self.build_search_pipeline(filters, page, limit)
            span.set_attribute("app.pipeline.stages", len(pipeline))
            return unpack_facet(await self.aggregate(pipeline))

    async def get_tree(self, id: Any) -> dict:
        with self.tracer.start_as_current_span("repository.category.get_tree") as span:
            span.set_attribute("app.category.id", str(id))
            oid = to_object_id(id)
            if oid is None:
                raise self.not_found()
            pipeline = [
                {"$match": {"_id": oid}},
                {
                    "$graphLookup": {
                        "from": Category.COLLECTION,
                        "startWith": "$_id",
                        "connectFromField": "_id",
                        "connectToField": "parentCategory",
                        "as": "descendants",
                        "depthField": "depth",
                    }
                },
            ]
            results = await self.aggregate(pipeline)
            if not results:
                raise self.not_found()
            root = results[0]
            span.set_attribute("app.category.descendants", len(root.get("descendants", [])))
            return build_tree(root, root.get("descendants", []))

    async def replace_ancestor_prefix(self, category_id: Any, old_prefix: List[Any], new_prefix: List[Any]) -> int:
        """Rewrite the ancestors of every descendant after ``category_id`` moves to a new parent."""
        oid = to_object_id(category_id)
        descendants = await self.find({"ancestors": oid})
        for descendant in descendants:
            ancestors = descendant.get("ancestors", [])
            suffix = ancestors[len(old_prefix):]
            await self.update_by_id(descendant["_id"], {"ancestors": [*new_prefix, *suffix]})
        return len(descendants)
