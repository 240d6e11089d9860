from typing import Dict, List, Sequence, Set

import networkx as nx

from .models import CourseGroup, CourseOffering


def _link_runs(G: nx.Graph, index_lists: Dict[str, List[int]]):
    # chaining consecutive members is enough for connectivity
    for idxs in index_lists.values():
        for u, v in zip(idxs, idxs[1:]):
            G.add_edge(u, v)


def group_offerings(offerings: Sequence[CourseOffering], enabled: bool = True) -> List[CourseGroup]:
    """Partition offerings into groups that sit their exam together.

    Offerings sharing a course code (exact, case-sensitive) join one group, as
    do offerings carrying the same shared tag. Offerings without a code are
    always singletons. Groups come back in first-seen order of the roster.
    With ``enabled=False`` every offering is its own group.
    """
    G = nx.Graph()
    G.add_nodes_from(range(len(offerings)))
    if enabled:
        by_code: Dict[str, List[int]] = {}
        by_tag: Dict[str, List[int]] = {}
        for i, off in enumerate(offerings):
            if not off.code:
                continue
            by_code.setdefault(off.code, []).append(i)
            if off.shared_tag:
                by_tag.setdefault(off.shared_tag, []).append(i)
        _link_runs(G, by_code)
        _link_runs(G, by_tag)

    components = sorted((sorted(c) for c in nx.connected_components(G)), key=lambda c: c[0])
    groups: List[CourseGroup] = []
    used_keys: Set[str] = set()
    for order, idxs in enumerate(components):
        members = tuple(offerings[i] for i in idxs)
        key = _group_key(members, idxs[0])
        if key in used_keys:
            key = f"{key}#{idxs[0] + 1}"
        used_keys.add(key)
        groups.append(CourseGroup(key=key, members=members, order=order))
    return groups


def _group_key(members: Sequence[CourseOffering], first_index: int) -> str:
    codes: List[str] = []
    for m in members:
        if m.code and m.code not in codes:
            codes.append(m.code)
    if not codes:
        return f"#{first_index + 1}"
    return "/".join(codes)
