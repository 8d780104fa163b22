"""
Cycle checks for the goal-references-goal graph.

Edges are LinkedSubGoal.linked_goal_id. The graph is acyclic by invariant, but
traversal tracks visited ids so a cycle introduced by a race still terminates.
"""
from typing import Callable, Dict, Iterable, List, Optional

from goal_engine.exceptions import CycleDetectedError, SelfReferenceError

# goal id -> ids of goals it links as sub-goals (empty for unknown ids)
LinkedIdsResolver = Callable[[str], Iterable[str]]


def find_link_path(
    parent_goal_id: str,
    candidate_goal_id: str,
    linked_ids_of: LinkedIdsResolver,
) -> Optional[List[str]]:
    """
    Depth-first search from the candidate for the parent.

    Returns:
        the chain of ids from candidate to parent, or None if unreachable
    """
    came_from: Dict[str, Optional[str]] = {candidate_goal_id: None}
    stack = [candidate_goal_id]

    while stack:
        current = stack.pop()
        if current == parent_goal_id:
            path = []
            node: Optional[str] = current
            while node is not None:
                path.append(node)
                node = came_from[node]
            path.reverse()
            return path
        for child in linked_ids_of(current) or ():
            if child in came_from:
                continue
            came_from[child] = current
            stack.append(child)

    return None


def check_link(
    parent_goal_id: str,
    candidate_goal_id: str,
    linked_ids_of: LinkedIdsResolver,
) -> None:
    """
    Raises:
        SelfReferenceError: candidate is the parent itself
        CycleDetectedError: the parent is reachable from the candidate
    """
    if parent_goal_id == candidate_goal_id:
        raise SelfReferenceError(parent_goal_id)

    path = find_link_path(parent_goal_id, candidate_goal_id, linked_ids_of)
    if path is not None:
        raise CycleDetectedError(parent_goal_id, candidate_goal_id, path)


def can_link(
    parent_goal_id: str,
    candidate_goal_id: str,
    linked_ids_of: LinkedIdsResolver,
) -> bool:
    if parent_goal_id == candidate_goal_id:
        return False
    return find_link_path(parent_goal_id, candidate_goal_id, linked_ids_of) is None
