"""
Query shaping shared by the thread and reply repositories.

Both the board listing and the full thread view are the same read: match
active parents, sort and limit them, then join their active children
(newest first, optionally limited) and count them. The SQL for each stage is
composed here so both views stay consistent; DatabaseManager runs it.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

# Fields exposed to readers. board, reported and delete_password never leave the store.
THREAD_FIELDS = ("_id", "text", "created_on", "bumped_on", "deleted_on")
REPLY_FIELDS = ("_id", "thread_id", "text", "created_on", "deleted_on")


def match_clause(filter: Dict[str, Any]) -> Tuple[str, tuple]:
    """Turn an equality filter into a WHERE clause. None matches NULL."""
    conditions = []
    params = []
    for field, value in filter.items():
        if value is None:
            conditions.append(f"{field} IS NULL")
        else:
            conditions.append(f"{field} = ?")
            params.append(value)
    if not conditions:
        return "", ()
    return "WHERE " + " AND ".join(conditions), tuple(params)


def parents_query(collection: str, filter: Dict[str, Any], fields: Sequence[str] = THREAD_FIELDS,
                  sort_field: str = "bumped_on", limit: Optional[int] = None) -> Tuple[str, tuple]:
    """Match, sort (newest first, latest insert wins ties) and limit the parent documents"""
    where, params = match_clause(filter)
    query = f"""
        SELECT {', '.join(fields)}
        FROM {collection}
        {where}
        ORDER BY {sort_field} DESC, rowid DESC
    """
    if limit is not None:
        query += " LIMIT ?"
        params += (limit,)
    return query, params


def children_query(collection: str, parent_ids: Sequence[str], fields: Sequence[str] = REPLY_FIELDS,
                   foreign_key: str = "thread_id", sort_field: str = "created_on",
                   limit: Optional[int] = None) -> Tuple[str, tuple]:
    """
    Active children of the given parents, newest first.

    Each row also carries its position within its parent and the parent's
    total active child count, so a limit on the returned rows never changes
    the count.
    """
    placeholders = ", ".join("?" for _ in parent_ids)
    query = f"""
        SELECT * FROM (
            SELECT {', '.join(fields)},
                   ROW_NUMBER() OVER (
                       PARTITION BY {foreign_key} ORDER BY {sort_field} DESC, rowid DESC
                   ) AS position,
                   COUNT(*) OVER (PARTITION BY {foreign_key}) AS child_count
            FROM {collection}
            WHERE deleted_on IS NULL AND {foreign_key} IN ({placeholders})
        )
    """
    params = tuple(parent_ids)
    if limit is not None:
        # keep at least the first row per parent so its count survives a zero limit
        query += " WHERE position <= ?"
        params += (max(limit, 1),)
    query += f" ORDER BY {foreign_key}, position"
    return query, params


def embed_children(parents: Iterable[Dict[str, Any]], children: Iterable[Dict[str, Any]],
                   as_field: str = "replies", count_field: Optional[str] = "replycount",
                   foreign_key: str = "thread_id", limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Attach child rows to their parents, keeping the parent order"""
    shaped = []
    by_id = {}
    for parent in parents:
        parent = dict(parent)
        parent[as_field] = []
        if count_field:
            parent[count_field] = 0
        by_id[parent["_id"]] = parent
        shaped.append(parent)

    for child in children:
        child = dict(child)
        position = child.pop("position")
        total = child.pop("child_count")
        parent = by_id.get(child[foreign_key])
        if parent is None:
            continue
        if count_field:
            parent[count_field] = total
        if limit is None or position <= limit:
            parent[as_field].append(child)

    return shaped
