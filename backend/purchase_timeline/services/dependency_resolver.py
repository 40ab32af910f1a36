"""Advisory prerequisite check for timeline steps."""
from dataclasses import dataclass, field
from typing import Iterable, List

from purchase_timeline.models.enums import StepStatus


@dataclass
class DependencyCheck:
    """Result of a dependency check."""
    allowed: bool
    missing: List[str] = field(default_factory=list)


def can_complete(step, all_siblings: Iterable) -> DependencyCheck:
    """
    Check whether every declared dependency of a step is completed.

    Dependencies are sibling step titles. A title that matches no sibling
    counts as missing. The result is advisory: completion is never blocked
    on it.

    Pure and deterministic: missing titles keep their declaration order.

    Args:
        step: Step whose ``dependencies`` are checked
        all_siblings: Every step of the same timeline

    Returns:
        DependencyCheck with the titles that are not yet completed
    """
    dependencies = step.dependencies or []
    if not dependencies:
        return DependencyCheck(allowed=True)

    # First sibling with a given title wins
    by_title = {}
    for sibling in all_siblings:
        by_title.setdefault(sibling.title, sibling)

    missing = [
        title for title in dependencies
        if title not in by_title or by_title[title].status != StepStatus.COMPLETED
    ]
    return DependencyCheck(allowed=not missing, missing=missing)
