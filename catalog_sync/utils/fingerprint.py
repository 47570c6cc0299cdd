"""
Query fingerprinting for run-scoped deduplication
"""

import hashlib
import json
from typing import Optional


def calculate_query_fingerprint(
    category: str,
    subcategory: Optional[str],
    sort_type: str,
    keyword: str,
    limit: int,
) -> str:
    """
    Calculate a deterministic fingerprint for a search query

    Args:
        category: Catalog category
        subcategory: Catalog subcategory (None for category-wide queries)
        sort_type: Upstream sort type
        keyword: Search keyword ("" for none)
        limit: Page size

    Returns:
        SHA-1 hex digest; equal iff every input is equal
    """
    query_fields = {
        "category": category,
        "subcategory": subcategory,
        "sortType": sort_type,
        "keyword": keyword,
        "limit": limit,
    }

    # Create deterministic JSON string
    query_json = json.dumps(query_fields, sort_keys=True, separators=(",", ":"))

    return hashlib.sha1(query_json.encode("utf-8")).hexdigest()
