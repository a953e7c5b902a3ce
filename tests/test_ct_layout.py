import hashlib

import pytest

from tilelog.ct_layout import (
    BundleParseError,
    convert_ct_entry,
    ct_bundle_id_hasher,
    ct_entries_path,
    ct_merkle_leaf_hasher,
)
from tilelog.ctentry import CTEntry

TEST_CERT = b"I am a Certificate"
TEST_PRECERT = b"I am a Precertificate"
TEST_PRECERT_TBS = b"I am a Precertificate TBS"
TEST_ISSUER_KEY_HASH = hashlib.sha256(b"I'm an IssuerKey").digest()
TEST_FINGERPRINTS = [hashlib.sha256(b"one").digest(), hashlib.sha256(b"two").digest()]


def _cert_entry():
    return CTEntry(
        timestamp=1234,
        is_precert=False,
        certificate=TEST_CERT,
        fingerprints_chain=TEST_FINGERPRINTS,
    )


def _precert_entry():
    return CTEntry(
        timestamp=1234,
        is_precert=True,
        certificate=TEST_PRECERT_TBS,
        precertificate=TEST_PRECERT,
        issuer_key_hash=TEST_ISSUER_KEY_HASH,
        fingerprints_chain=TEST_FINGERPRINTS,
    )


ENTRY_SETS = {
    "single certificate": [_cert_entry],
    "single precertificate": [_precert_entry],
    "mixed bag": [_precert_entry, _cert_entry],
}


@pytest.mark.parametrize(
    "n, p, want",
    [
        (0, 0, "tile/data/000"),
        (0, 8, "tile/data/000.p/8"),
        (255, 0, "tile/data/255"),
        (255, 253, "tile/data/255.p/253"),
        (256, 0, "tile/data/256"),
        (123456789000, 0, "tile/data/x123/x456/x789/000"),
    ],
)
def test_ct_entries_path(n, p, want):
    assert ct_entries_path(n, p) == want


@pytest.mark.parametrize("name", sorted(ENTRY_SETS))
def test_ct_identity_hasher(name):
    entries = [make() for make in ENTRY_SETS[name]]
    bundle = b"".join(e.leaf_data(123) for e in entries)
    want = [e.identity() for e in entries]
    assert ct_bundle_id_hasher(bundle) == want


@pytest.mark.parametrize("name", sorted(ENTRY_SETS))
def test_ct_merkle_leaf_hasher(name):
    entries = [make() for make in ENTRY_SETS[name]]
    bundle = b"".join(e.leaf_data(123) for e in entries)
    want = [e.merkle_leaf_hash(123) for e in entries]
    assert ct_merkle_leaf_hasher(bundle) == want


def test_identity_hashes_are_of_certificate_and_precertificate():
    bundle = _cert_entry().leaf_data(0) + _precert_entry().leaf_data(1)
    assert ct_bundle_id_hasher(bundle) == [
        hashlib.sha256(TEST_CERT).digest(),
        hashlib.sha256(TEST_PRECERT).digest(),
    ]


@pytest.mark.parametrize("hasher", [ct_bundle_id_hasher, ct_merkle_leaf_hasher])
def test_empty_bundle_has_no_hashes(hasher):
    assert hasher(b"") == []


@pytest.mark.parametrize("hasher", [ct_bundle_id_hasher, ct_merkle_leaf_hasher])
def test_unknown_entry_type(hasher):
    bundle = (1234).to_bytes(8, "big") + b"\x00\x02" + b"\x00" * 10
    with pytest.raises(BundleParseError, match="unknown entry type"):
        hasher(bundle)


@pytest.mark.parametrize("hasher", [ct_bundle_id_hasher, ct_merkle_leaf_hasher])
@pytest.mark.parametrize("make", [_cert_entry, _precert_entry])
def test_truncated_bundle(hasher, make):
    data = make().leaf_data(7)
    with pytest.raises(BundleParseError, match="chain fingerprints"):
        hasher(data[:-1])


@pytest.mark.parametrize("hasher", [ct_bundle_id_hasher, ct_merkle_leaf_hasher])
def test_short_timestamp(hasher):
    with pytest.raises(BundleParseError, match="timestamp"):
        hasher(b"\x00\x01\x02")


@pytest.mark.parametrize("hasher", [ct_bundle_id_hasher, ct_merkle_leaf_hasher])
def test_more_than_bundle_width_is_trailing_data(hasher):
    one = _cert_entry().leaf_data(5)
    with pytest.raises(BundleParseError, match=f"unexpected {len(one)} bytes of trailing"):
        hasher(one * 257)


def test_full_bundle_width_is_accepted():
    one = _cert_entry().leaf_data(5)
    hashes = ct_merkle_leaf_hasher(one * 256)
    assert len(hashes) == 256
    assert set(hashes) == {_cert_entry().merkle_leaf_hash(5)}


def test_convert_ct_entry():
    ct = _precert_entry()
    entry = convert_ct_entry(ct)
    assert entry.identity == ct.identity()
    assert entry.index is None

    data = entry.marshal_bundle_data(123)
    assert data == ct.leaf_data(123)
    assert entry.data == ct.leaf_data(123)
    assert entry.leaf_hash == ct.merkle_leaf_hash(123)
    assert entry.index == 123


def test_convert_ct_entry_remarshal_updates_index_dependent_fields():
    ct = _cert_entry()
    entry = convert_ct_entry(ct)
    entry.marshal_bundle_data(1)
    entry.marshal_bundle_data(2)
    assert entry.index == 2
    assert entry.leaf_hash == ct.merkle_leaf_hash(2)
    assert ct_merkle_leaf_hasher(entry.data) == [ct.merkle_leaf_hash(2)]