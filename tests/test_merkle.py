import pytest

from zap_indexer.app.domain.merkle import (
    MerkleTree,
    encode_amount,
    leaf_hash,
    node_hash,
    parse_proof,
    verify_proof,
)

A1 = bytes.fromhex("00" * 19 + "01")
A2 = bytes.fromhex("00" * 19 + "02")
A3 = bytes.fromhex("00" * 19 + "03")

# sha256 vectors computed independently of this code base
L1 = "3e95f286b7945cfaca492085f27dbf2cfc2ddf349a8b85f29a4f98de1412c86a"
L2 = "7937c1a74cf75c4eec9d7c5aa0651c296bee354b055ca61681858ccf101b1baf"
L3 = "e36281ab79a692d1120402e09970da199c16d4669cdcf805b40439c44585a9f4"
N12 = "5d2ffaec136132a74628bbbe1a4726310680296d3c13d6bb140a2474069f6ab0"
ROOT = "5fe8b80b0ba89483458460a08a518ee85d86104da3525fc8c7f2ebae401fb34f"


def test_encode_amount_is_uint128_big_endian():
    assert encode_amount(1) == b"\x00" * 15 + b"\x01"
    assert encode_amount(2**128 - 1) == b"\xff" * 16


@pytest.mark.parametrize("amount", [-1, 2**128])
def test_encode_amount_rejects_out_of_range(amount):
    with pytest.raises(ValueError):
        encode_amount(amount)


def test_leaf_hash_vectors():
    assert leaf_hash(A1, 100).hex() == L1
    assert leaf_hash(A2, 200).hex() == L2
    assert leaf_hash(A3, 300).hex() == L3


def test_node_hash_is_order_independent():
    a, b = bytes.fromhex(L1), bytes.fromhex(L2)
    assert node_hash(a, b) == node_hash(b, a)
    assert node_hash(a, b).hex() == N12


def test_tree_root_and_odd_leaf_promotion():
    tree = MerkleTree([(A3, 300), (A1, 100), (A2, 200)])
    assert tree.root.hex() == ROOT
    assert [leaf.address for leaf in tree.leaves] == [A1, A2, A3]

    proofs = dict((leaf.address, proof) for leaf, proof in tree.proofs())
    # A3 is promoted at the first level, so its only sibling is N12.
    assert proofs[A3] == f"{L3} {N12} {ROOT}"
    assert proofs[A1] == f"{L1} {L2} {L3} {ROOT}"


def test_single_leaf_tree():
    tree = MerkleTree([(A1, 100)])
    assert tree.root.hex() == L1
    ((_, proof),) = tree.proofs()
    assert proof == f"{L1} {L1}"
    assert verify_proof(A1, 100, proof, tree.root)


def test_every_proof_verifies():
    allocations = [(bytes([i]) * 20, i * 1_000) for i in range(1, 12)]
    tree = MerkleTree(allocations)
    for leaf, proof in tree.proofs():
        assert verify_proof(leaf.address, leaf.amount, proof, tree.root)


def test_tampered_proof_fails():
    tree = MerkleTree([(A1, 100), (A2, 200), (A3, 300)])
    _, proof = tree.proofs()[0]
    assert not verify_proof(A1, 101, proof, tree.root)
    assert not verify_proof(A2, 100, proof, tree.root)

    leaf, siblings, root = parse_proof(proof)
    siblings[0] = bytes(32)
    forged = " ".join(h.hex() for h in [leaf, *siblings, root])
    assert not verify_proof(A1, 100, forged, tree.root)


def test_leaf_cannot_pose_as_internal_node():
    tree = MerkleTree([(A1, 100), (A2, 200)])
    # A 64-byte node preimage can never equal a 52-byte leaf preimage.
    assert not verify_proof(A1, 100, f"{N12} {N12}", tree.root)


def test_duplicate_addresses_rejected():
    with pytest.raises(ValueError):
        MerkleTree([(A1, 1), (A1, 2)])


def test_empty_tree_rejected():
    with pytest.raises(ValueError):
        MerkleTree([])
