# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, List, Sequence, Set

from .model import Step


class CycleError(ValueError):
    def __init__(self, stuck: List[str]):
        self.stuck = stuck
        super().__init__(f"dependency cycle (or unresolved dependencies). Stuck steps: {stuck}")


def build_edges(steps: Sequence[Step]) -> tuple[Dict[int, Set[int]], Dict[int, int]]:
    """
    Edge dep -> step (dep must finish before step), plus in-degree per step.
    Indices refer to positions in `steps`.
    """
    adj: Dict[int, Set[int]] = {i: set() for i in range(len(steps))}
    indeg: Dict[int, int] = {i: 0 for i in range(len(steps))}

    for i, step in enumerate(steps):
        for dep in step.depends_on:
            if i not in adj[dep]:
                adj[dep].add(i)
                indeg[i] += 1

    return adj, indeg


def execution_levels(steps: Sequence[Step]) -> List[List[str]]:
    """
    Group steps into topological "stages".

    Every step in a stage only depends on steps in earlier stages, so with
    enough workers a stage runs fully in parallel. Within a stage, steps keep
    declaration order, which is also the scheduler's tie-break.
    """
    adj, indeg = build_edges(steps)
    indeg = dict(indeg)
    q = deque(i for i in range(len(steps)) if indeg[i] == 0)

    levels: List[List[str]] = []
    processed = 0

    while q:
        level_idx = sorted(q)
        q.clear()
        levels.append([steps[i].name for i in level_idx])
        processed += len(level_idx)

        for node in level_idx:
            for child in adj[node]:
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)

    if processed != len(steps):
        raise CycleError([steps[i].name for i in range(len(steps)) if indeg[i] > 0])

    return levels
