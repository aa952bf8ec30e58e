from itertools import groupby
from typing import Any, Dict, List


def merge_consecutive_roles(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Merge runs of same-role messages so turns alternate user/model/user"""
    grouped = []
    for role, group in groupby(messages, key=lambda x: x["role"]):
        contents = [msg["content"] for msg in group]
        grouped.append({"role": role, "content": "\n".join(contents)})
    return grouped
