"""
Integer-keyed disjoint-set (union-find) with path compression.
"""


class DisjointSet:
    """
    Partition of integer keys into disjoint sets.

    Keys are registered lazily: the first ``find`` of an unseen key makes it
    the root of its own singleton set.
    """

    def __init__(self):
        self._parent = {}

    def find(self, x: int) -> int:
        """Return the root of x, registering x if it has never been seen."""
        parent = self._parent
        if x not in parent:
            parent[x] = x
            return x
        # path halving
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(self, a: int, b: int) -> int:
        """Merge the sets holding a and b; the root of a survives."""
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a
        return root_a

    def connected(self, a: int, b: int) -> bool:
        return self.find(a) == self.find(b)

    def roots(self):
        """Distinct roots, in the order their keys were first registered."""
        seen = {}
        for key in list(self._parent):
            seen.setdefault(self.find(key), None)
        return list(seen)

    def __contains__(self, x):
        return x in self._parent

    def __len__(self):
        return len(self._parent)

    def __repr__(self):
        return f"DisjointSet({len(self._parent)} keys, {len(self.roots())} sets)"
