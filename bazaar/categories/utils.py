from typing import Any, Dict, Iterable, List, Mapping


def build_category_tree(categories: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Nest a flat, pre-ordered category list by parent_id in one pass.

    Each node gets a `children` list. Parentless nodes become roots, nodes whose
    parent is missing from the input (inactive or deleted) are dropped along with
    their subtree. Sibling order follows input order.
    """
    rows = list(categories)
    nodes = {row["id"]: {**row, "children": []} for row in rows}

    roots = []
    for row in rows:
        node = nodes[row["id"]]
        parent_id = row.get("parent_id")
        if parent_id is None:
            roots.append(node)
        elif parent_id in nodes:
            nodes[parent_id]["children"].append(node)
    return roots
