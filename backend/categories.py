import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

# Display order of the board columns
CATEGORIES = ("todo", "inProgress", "done")


def category_rank(category: Any) -> int:
    try:
        return CATEGORIES.index(category) + 1
    except ValueError:
        return len(CATEGORIES) + 1


def backfill_categories(groups: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Re-express grouped tasks as exactly the three board columns.

    Columns with no tasks get an empty list. Groups whose category is not a
    board column are dropped.
    """
    by_category = {}
    for group in groups:
        by_category.setdefault(group.get("category"), group.get("tasks", []))

    dropped = [c for c in by_category if c not in CATEGORIES]
    if dropped:
        logger.debug("dropping tasks in unknown categories: %s", dropped)

    return [{"category": c, "tasks": by_category.get(c, [])} for c in CATEGORIES]
