"""
列表查询参数与分页

排序字段只能取自 SortSpec 声明的白名单，未知字段静默回落到默认字段，
排序方向仅接受 ASC / DESC。
"""

import math
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import asc, desc


class SortSpec:
    def __init__(self, model, allowed: Sequence[str], default: str):
        if default not in allowed:
            raise ValueError(f"默认排序字段 {default} 不在白名单中")
        self.model = model
        self.allowed = tuple(allowed)
        self.default = default

    def resolve(self, field: str) -> str:
        name = str(field or "").strip()
        return name if name in self.allowed else self.default

    def clauses(self, field: str, order: str) -> list:
        direction = asc if normalize_order(order) == "ASC" else desc
        name = self.resolve(field)
        items = [direction(getattr(self.model, name))]
        # 主键兜底，保证分页顺序稳定
        if name != "id" and hasattr(self.model, "id"):
            items.append(direction(self.model.id))
        return items


def normalize_order(order: str) -> str:
    return "ASC" if str(order or "").strip().upper() == "ASC" else "DESC"


class ListOptions:
    def __init__(self, page: int = 1, limit: int = 10, sort_by: str = "", order: str = "DESC"):
        self.page = max(1, int(page or 1))
        self.limit = max(1, int(limit or 10))
        self.sort_by = str(sort_by or "")
        self.order = normalize_order(order)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": int(math.ceil(total / limit)) if limit else 0,
    }


def paginate(query, options: ListOptions, sort: SortSpec = None) -> Tuple[List[Any], Dict[str, int]]:
    total = query.order_by(None).count()
    if sort is not None:
        query = query.order_by(*sort.clauses(options.sort_by, options.order))
    items = query.offset(options.offset).limit(options.limit).all()
    return items, build_pagination(options.page, options.limit, total)
