"""
Fixed-depth Poseidon Merkle trees, one per storage address.

Every tree has branching factor ``POSEIDON_INPUTS`` and depth ``MT_DEPTH``,
so it holds ``MAX_MT_LEAVES`` leaves. Internal nodes are
``poseidon_raw(children)``; missing leaves pad with zero.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from tokamak_l2_toolkit.crypto.poseidon import poseidon, poseidon_raw
from tokamak_l2_toolkit.shared.constants import ProtocolConstants
from tokamak_l2_toolkit.shared.exceptions import (
    CapacityExceeded,
    IndexOutOfRange,
    UnregisteredAddress,
)
from tokamak_l2_toolkit.utils import bytes_to_int, pad32

ARITY = ProtocolConstants.POSEIDON_INPUTS
DEPTH = ProtocolConstants.MT_DEPTH
CAPACITY = ProtocolConstants.MAX_MT_LEAVES
ZERO_VALUE = 0


def leaf_hash(key: bytes, value: bytes) -> int:
    """Leaf commitment ``poseidon(pad32(key) || pad32(value))``."""
    return bytes_to_int(poseidon(pad32(key) + pad32(value)))


# Slots without a registered key commit to an all-zero (key, value) pair
EMPTY_LEAF = leaf_hash(b"", b"")


@dataclass(frozen=True)
class MerkleProof:
    """
    Inclusion proof for one leaf.

    ``siblings[level]`` holds the ``ARITY - 1`` other children of the node on
    the path at that level; ``path_indices[level]`` is the position of the
    path node among its ``ARITY`` children.
    """

    root: int
    leaf: int
    leaf_index: int
    siblings: List[List[int]]
    path_indices: List[int]


def verify_proof(proof: MerkleProof) -> bool:
    if len(proof.siblings) != len(proof.path_indices):
        return False
    node = proof.leaf
    for siblings, position in zip(proof.siblings, proof.path_indices):
        if len(siblings) != ARITY - 1 or not 0 <= position < ARITY:
            return False
        children = list(siblings)
        children.insert(position, node)
        node = poseidon_raw(children)
    return node == proof.root


class MerkleTree:
    """A full tree over up to ``CAPACITY`` leaf values."""

    def __init__(self, leaves: Sequence[int]):
        if len(leaves) > CAPACITY:
            raise CapacityExceeded(
                f"A depth-{DEPTH} tree holds {CAPACITY} leaves, got {len(leaves)}"
            )
        level = list(leaves) + [ZERO_VALUE] * (CAPACITY - len(leaves))
        self._levels: List[List[int]] = [level]
        for _ in range(DEPTH):
            level = [
                poseidon_raw(level[i : i + ARITY]) for i in range(0, len(level), ARITY)
            ]
            self._levels.append(level)

    @property
    def root(self) -> int:
        return self._levels[-1][0]

    @property
    def leaves(self) -> List[int]:
        return list(self._levels[0])

    def create_proof(self, leaf_index: int) -> MerkleProof:
        if not 0 <= leaf_index < CAPACITY:
            raise IndexOutOfRange(
                f"Leaf index {leaf_index} is outside [0, {CAPACITY})"
            )
        siblings: List[List[int]] = []
        path_indices: List[int] = []
        index = leaf_index
        for level in self._levels[:-1]:
            position = index % ARITY
            start = index - position
            group = level[start : start + ARITY]
            siblings.append(group[:position] + group[position + 1 :])
            path_indices.append(position)
            index //= ARITY
        return MerkleProof(
            root=self.root,
            leaf=self._levels[0][leaf_index],
            leaf_index=leaf_index,
            siblings=siblings,
            path_indices=path_indices,
        )


def build_tree(keys: Sequence[bytes], values: Sequence[bytes]) -> MerkleTree:
    """Tree whose leaf ``i`` commits to ``(keys[i], values[i])``."""
    if len(keys) != len(values):
        raise ValueError("Each registered key needs exactly one value")
    if len(keys) > CAPACITY:
        raise CapacityExceeded(
            f"At most {CAPACITY} keys can be registered per address, got {len(keys)}"
        )
    leaves = [leaf_hash(k, v) for k, v in zip(keys, values)]
    leaves.extend([EMPTY_LEAF] * (CAPACITY - len(leaves)))
    return MerkleTree(leaves)


class MerkleForest:
    """One tree per storage address, in registration order."""

    def __init__(self, addresses: Sequence[str], trees: Sequence[MerkleTree]):
        if len(addresses) != len(trees):
            raise ValueError("A forest needs one tree per address")
        self.addresses = list(addresses)
        self.trees = list(trees)
        self._index: Dict[str, int] = {a.lower(): i for i, a in enumerate(addresses)}

    def __len__(self) -> int:
        return len(self.trees)

    @property
    def roots(self) -> List[int]:
        return [tree.root for tree in self.trees]

    def address_index(self, address: str) -> int:
        try:
            return self._index[address.lower()]
        except KeyError:
            raise UnregisteredAddress(f"No tree for address {address}") from None

    def tree_for(self, address: str) -> MerkleTree:
        return self.trees[self.address_index(address)]

    def root_of(self, address: str) -> int:
        return self.tree_for(address).root

    def proof(self, address_index: int, leaf_index: int) -> MerkleProof:
        if not 0 <= address_index < len(self.trees):
            raise IndexOutOfRange(
                f"Address index {address_index} is outside [0, {len(self.trees)})"
            )
        return self.trees[address_index].create_proof(leaf_index)
