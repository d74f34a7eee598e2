# tests/test_grants.py
import asyncio
import itertools
import json

import pytest

from fhevm_core import grants as grants_mod
from fhevm_core.constants import GRANT_DURATION_DAYS, SECONDS_PER_DAY
from fhevm_core.crypto import recover_typed_data_signer
from fhevm_core.errors import InvalidAddress
from fhevm_core.grants import DecryptionGrant, StorageKey, derive_key, obtain_grant
from fhevm_core.runtime import KeyPair
from fhevm_core.sensitive import Secret

from conftest import CONTRACT_A, CONTRACT_B, CONTRACT_C

USER = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"


def test_storage_key_is_order_independent(mock_runtime):
    keys = {
        derive_key(mock_runtime, list(perm), USER).key
        for perm in itertools.permutations([CONTRACT_A, CONTRACT_B, CONTRACT_C])
    }
    assert len(keys) == 1
    key = keys.pop()
    assert key.startswith(f"{USER}:0x")
    assert len(key.split(":")[1]) == 66


def test_storage_key_exposes_sorted_addresses(mock_runtime):
    sk = StorageKey(mock_runtime, [CONTRACT_B, CONTRACT_A], USER)
    assert sk.contract_addresses == [CONTRACT_A, CONTRACT_B]
    assert sk.user_address == USER
    assert sk.public_key is None


def test_storage_key_does_not_mutate_input(mock_runtime):
    addresses = [CONTRACT_B, CONTRACT_A]
    StorageKey(mock_runtime, addresses, USER)
    assert addresses == [CONTRACT_B, CONTRACT_A]


def test_storage_key_varies_with_set_user_and_public_key(mock_runtime):
    base = derive_key(mock_runtime, [CONTRACT_A], USER).key
    assert derive_key(mock_runtime, [CONTRACT_A, CONTRACT_B], USER).key != base
    other_user = "0x" + "12" * 20
    assert derive_key(mock_runtime, [CONTRACT_A], other_user).key != base
    assert derive_key(mock_runtime, [CONTRACT_A], USER, public_key="ab" * 32).key != base


@pytest.mark.parametrize("bad", ["", "0x1234", "not-an-address", None, "0x" + "zz" * 20])
def test_storage_key_rejects_bad_user_address(mock_runtime, bad):
    with pytest.raises(InvalidAddress):
        StorageKey(mock_runtime, [CONTRACT_A], bad)


def _grant(start=1_700_000_000, days=365, addresses=(CONTRACT_B, CONTRACT_A)):
    return DecryptionGrant(
        public_key="ab" * 32,
        private_key=Secret("cd" * 32),
        signature="0x" + "ee" * 65,
        start_timestamp=start,
        duration_days=days,
        user_address=USER,
        contract_addresses=addresses,
        eip712={"message": {"startTimestamp": start}},
    )


def test_validity_boundary():
    g = _grant(start=1000, days=1)
    boundary = 1000 + SECONDS_PER_DAY
    assert g.expires_at == boundary
    assert g.is_valid(now=boundary - 1)
    assert not g.is_valid(now=boundary)
    assert not g.is_valid(now=boundary + 1)


def test_grant_sorts_contract_addresses():
    assert _grant().contract_addresses == (CONTRACT_A, CONTRACT_B)


def test_grant_serialization_roundtrip():
    g = _grant()
    restored = DecryptionGrant.from_json(g.to_json())
    assert restored.signature == g.signature
    assert restored.contract_addresses == (CONTRACT_A, CONTRACT_B)
    assert restored.start_timestamp == g.start_timestamp
    assert restored.duration_days == g.duration_days
    assert restored.eip712 == g.eip712
    assert restored.private_key.reveal() == "cd" * 32
    assert restored.equals(g)


def test_grant_wire_format_fields():
    data = json.loads(_grant().to_json())
    assert set(data) == {
        "publicKey", "privateKey", "signature", "startTimestamp",
        "durationDays", "userAddress", "contractAddresses", "eip712",
    }
    assert data["contractAddresses"] == [CONTRACT_A, CONTRACT_B]


def test_private_key_never_in_repr():
    g = _grant()
    assert "cd" * 32 not in repr(g)
    assert "cd" * 32 not in str(g.private_key)
    assert "cd" * 32 not in f"{g.private_key}"


def test_obtain_grant_reuses_cached_grant(mock_runtime, signer, store):
    first = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A, CONTRACT_B], signer, store))
    second = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_B, CONTRACT_A], signer, store))
    assert signer.sign_count == 1
    assert second.signature == first.signature
    assert second.equals(first)


def test_obtain_grant_mints_for_different_contract_set(mock_runtime, signer, store):
    first = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    second = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A, CONTRACT_C], signer, store))
    assert signer.sign_count == 2
    assert not second.equals(first)
    assert len(store.items) == 2


def test_minted_grant_is_signed_by_user(mock_runtime, signer, store):
    g = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_B, CONTRACT_A], signer, store))
    assert g.user_address == signer.address
    assert g.duration_days == GRANT_DURATION_DAYS
    assert g.contract_addresses == (CONTRACT_A, CONTRACT_B)
    assert g.eip712["message"]["contractAddresses"] == [CONTRACT_A, CONTRACT_B]
    assert recover_typed_data_signer(g.eip712, g.signature) == signer.address


def test_expired_cache_entry_is_reminted(mock_runtime, signer, store, monkeypatch):
    now = [1_700_000_000]
    monkeypatch.setattr(grants_mod, "timestamp_now", lambda: now[0])

    first = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    now[0] += GRANT_DURATION_DAYS * SECONDS_PER_DAY
    second = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))

    assert signer.sign_count == 2
    assert second.start_timestamp == now[0]
    assert not second.equals(first)


def test_corrupt_cache_entry_is_a_miss(mock_runtime, signer, store):
    key = derive_key(mock_runtime, [CONTRACT_A], signer.address).key
    store.items[key] = "{not json"
    g = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    assert signer.sign_count == 1
    assert json.loads(store.items[key])["signature"] == g.signature


def test_incomplete_cache_entry_is_a_miss(mock_runtime, signer, store):
    key = derive_key(mock_runtime, [CONTRACT_A], signer.address).key
    store.items[key] = json.dumps({"signature": "0x00"})
    asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    assert signer.sign_count == 1


def test_ephemeral_grant_stored_under_agnostic_key(mock_runtime, signer, store):
    g = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    agnostic = derive_key(mock_runtime, [CONTRACT_A], signer.address).key
    assert list(store.items) == [agnostic]
    assert json.loads(store.items[agnostic])["publicKey"] == g.public_key


def test_supplied_key_pair_stored_under_public_key(mock_runtime, signer, store):
    pair = mock_runtime.generate_keypair()
    g = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store, key_pair=pair))
    assert g.public_key == pair.public_key
    with_pk = derive_key(mock_runtime, [CONTRACT_A], signer.address, pair.public_key).key
    assert list(store.items) == [with_pk]

    again = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store, key_pair=pair))
    assert again.equals(g)
    assert signer.sign_count == 1

    # a lookup without the key pair does not see it
    asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    assert signer.sign_count == 2


def test_grants_are_per_user(mock_runtime, signer, other_signer, store):
    a = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], signer, store))
    b = asyncio.run(obtain_grant(mock_runtime, [CONTRACT_A], other_signer, store))
    assert a.user_address != b.user_address
    assert other_signer.sign_count == 1


def test_key_pair_from_mapping_wraps_secret():
    pair = KeyPair.from_mapping({"publicKey": "01", "privateKey": "02"})
    assert isinstance(pair.private_key, Secret)
    assert pair.private_key.reveal() == "02"
