from typing import Sequence

import networkx as nx

from .conflicts import groups_share_lecturer, groups_share_students
from .models import CourseGroup


def build_group_conflict_graph(groups: Sequence[CourseGroup], cross_level: bool = True) -> nx.Graph:
    """Groups are nodes; an edge joins two groups that must not sit at the same time."""
    G = nx.Graph()
    for g in groups:
        G.add_node(g.key, students=g.student_count)
    for i in range(len(groups)):
        for j in range(i + 1, len(groups)):
            u, v = groups[i], groups[j]
            if groups_share_students(u, v, cross_level) or groups_share_lecturer(u, v):
                G.add_edge(u.key, v.key)
    return G


def greedy_clique_lb(G: nx.Graph) -> int:
    """Fast lower bound on the number of distinct time slots needed.

    Grows a clique greedily from the highest-degree node; any clique found
    must be spread over that many non-overlapping slots.
    """
    if G.number_of_nodes() == 0:
        return 0
    seed = max(sorted(G.nodes()), key=lambda u: G.degree(u))
    clique = {seed}
    candidates = set(G.neighbors(seed))
    while candidates:
        u = max(sorted(candidates), key=lambda v: G.degree(v))
        new_cands = {v for v in candidates if all(G.has_edge(v, w) for w in clique)}
        if u in new_cands:
            clique.add(u)
            candidates = new_cands.intersection(G.neighbors(u))
        else:
            candidates.remove(u)
    return len(clique)
