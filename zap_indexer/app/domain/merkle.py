"""
Merkle tree over reward allocations.

The encoding is consumed by the on-chain distributor contract, so every byte
here is part of a wire contract:

- amount:  unsigned 128-bit big-endian integer (16 bytes)
- leaf:    sha256(address[20] || sha256(amount[16]))
- node:    sha256(min(left, right) || max(left, right))
- odd node at the end of a level is promoted to the next level unchanged
- leaves are ordered by their 20-byte address

Leaf preimages are 52 bytes long and node preimages 64 bytes long, so a leaf
hash can never be replayed as an internal node (and vice versa).

Serialized proof: space separated lowercase hex of
``leaf_hash sibling_0 ... sibling_n root``.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Final, Iterable

_AMOUNT_BYTES: Final[int] = 16
_ADDRESS_BYTES: Final[int] = 20


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def encode_amount(amount: int) -> bytes:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    try:
        return amount.to_bytes(_AMOUNT_BYTES, byteorder="big", signed=False)
    except OverflowError as exc:
        raise ValueError(f"amount does not fit in uint128: {amount}") from exc


def leaf_hash(address: bytes, amount: int) -> bytes:
    if len(address) != _ADDRESS_BYTES:
        raise ValueError(f"Expected {_ADDRESS_BYTES} address bytes, got len={len(address)}")
    return _sha256(address + _sha256(encode_amount(amount)))


def node_hash(a: bytes, b: bytes) -> bytes:
    left, right = (a, b) if a <= b else (b, a)
    return _sha256(left + right)


@dataclass(frozen=True)
class MerkleLeaf:
    address: bytes
    amount: int
    hash: bytes


class MerkleTree:
    """Immutable Merkle tree built from (address bytes, amount) pairs."""

    def __init__(self, allocations: Iterable[tuple[bytes, int]]) -> None:
        leaves = sorted(
            (MerkleLeaf(address=a, amount=amt, hash=leaf_hash(a, amt)) for a, amt in allocations),
            key=lambda leaf: leaf.address,
        )
        if not leaves:
            raise ValueError("Cannot build a Merkle tree without leaves")
        seen: set[bytes] = set()
        for leaf in leaves:
            if leaf.address in seen:
                raise ValueError(f"Duplicate leaf address 0x{leaf.address.hex()}")
            seen.add(leaf.address)

        self._leaves: list[MerkleLeaf] = leaves
        self._levels: list[list[bytes]] = [[leaf.hash for leaf in leaves]]
        while len(self._levels[-1]) > 1:
            current = self._levels[-1]
            parents = [
                node_hash(current[i], current[i + 1]) if i + 1 < len(current) else current[i]
                for i in range(0, len(current), 2)
            ]
            self._levels.append(parents)

    @property
    def root(self) -> bytes:
        return self._levels[-1][0]

    @property
    def leaves(self) -> list[MerkleLeaf]:
        return list(self._leaves)

    def path(self, index: int) -> list[bytes]:
        """Sibling hashes from the leaf at ``index`` up to (excluding) the root."""
        siblings: list[bytes] = []
        for level in self._levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                siblings.append(level[sibling])
            index //= 2
        return siblings

    def proofs(self) -> list[tuple[MerkleLeaf, str]]:
        return [
            (leaf, serialize_proof(leaf.hash, self.path(i), self.root))
            for i, leaf in enumerate(self._leaves)
        ]


def serialize_proof(leaf: bytes, siblings: list[bytes], root: bytes) -> str:
    return " ".join(h.hex() for h in [leaf, *siblings, root])


def parse_proof(proof: str) -> tuple[bytes, list[bytes], bytes]:
    parts = [bytes.fromhex(p) for p in proof.split()]
    if len(parts) < 2:
        raise ValueError("Proof must contain at least the leaf and the root")
    return parts[0], parts[1:-1], parts[-1]


def verify_proof(address: bytes, amount: int, proof: str, root: bytes | None = None) -> bool:
    """
    Check a serialized proof for (address, amount).

    When ``root`` is given the proof must also end in that root.
    """
    leaf, siblings, proof_root = parse_proof(proof)
    if leaf != leaf_hash(address, amount):
        return False
    if root is not None and proof_root != root:
        return False
    current = leaf
    for sibling in siblings:
        current = node_hash(current, sibling)
    return current == proof_root
