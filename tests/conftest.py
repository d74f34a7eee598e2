# tests/conftest.py
import types

import pytest
from eth_utils import to_checksum_address

from fhevm_core.constants import (
    EIP712_DOMAIN_FIELDS,
    EIP712_PRIMARY_TYPE,
    MOCK_RPC_GET_CLEARTEXTS,
    MOCK_RPC_REGISTER_CLEARTEXTS,
    USER_DECRYPT_FIELDS,
)
from fhevm_core.crypto import generate_keypair_hex
from fhevm_core.runtime import MockRuntime
from fhevm_core.sdk import RuntimeRegistry
from fhevm_core.signer import LocalAccountSigner
from fhevm_core.storage import InMemoryStorage, PublicKeyCache

CONTRACT_A = to_checksum_address("0x" + "aa" * 20)
CONTRACT_B = to_checksum_address("0x" + "bb" * 20)
CONTRACT_C = to_checksum_address("0x" + "cc" * 20)
ACL_ADDRESS = to_checksum_address("0x" + "ac" * 20)
DEV_URL = "http://localhost:8545"
SEPOLIA_URL = "https://sepolia.example"

METADATA = {
    "ACLAddress": ACL_ADDRESS,
    "InputVerifierAddress": to_checksum_address("0x" + "1f" * 20),
    "KMSVerifierAddress": to_checksum_address("0x" + "2e" * 20),
}


class FakeNode:
    """JSON-RPC node double. Values may be callables taking params."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.cleartexts = {}

    async def request(self, method, params=None):
        self.calls.append(method)
        if method == MOCK_RPC_REGISTER_CLEARTEXTS:
            for entry in params[0]:
                self.cleartexts[entry["handle"]] = entry["value"]
            return True
        if method == MOCK_RPC_GET_CLEARTEXTS and method not in self.responses:
            return {h: self.cleartexts.get(h) for h in params[0]}
        if method not in self.responses:
            raise RuntimeError(f"method not found: {method}")
        value = self.responses[method]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(params)
        return value

    def methods(self):
        return list(self.calls)


def dev_node(**overrides):
    responses = {
        "eth_chainId": "0x7a69",
        "web3_clientVersion": "HardhatNetwork/2.22.0/@ethereumjs/vm/7.0.0",
        "fhevm_relayer_metadata": dict(METADATA),
    }
    responses.update(overrides)
    return FakeNode(responses)


def make_rpc_factory(nodes):
    """url → FakeNode; provider objects pass through unchanged."""
    def factory(provider_or_url):
        if isinstance(provider_or_url, str):
            return nodes[provider_or_url]
        return provider_or_url
    return factory


def build_envelope(public_key, contract_addresses, start, duration, chain_id=11155111):
    pk = public_key if public_key.startswith("0x") else "0x" + public_key
    return {
        "types": {
            "EIP712Domain": [dict(f) for f in EIP712_DOMAIN_FIELDS],
            EIP712_PRIMARY_TYPE: [dict(f) for f in USER_DECRYPT_FIELDS],
        },
        "primaryType": EIP712_PRIMARY_TYPE,
        "domain": {
            "name": "Decryption",
            "version": "1",
            "chainId": 10901,
            "verifyingContract": to_checksum_address("0x" + "5f" * 20),
        },
        "message": {
            "publicKey": pk,
            "contractAddresses": list(contract_addresses),
            "contractsChainId": chain_id,
            "startTimestamp": start,
            "durationDays": duration,
        },
    }


class FakeSdkInstance:
    def __init__(self, config):
        self.config = config
        self.decrypted = {}

    def generate_keypair(self):
        return generate_keypair_hex()

    def create_eip712(self, public_key, contract_addresses, start, duration):
        return build_envelope(public_key, contract_addresses, start, duration)

    async def user_decrypt(self, handles, private_key, public_key, signature,
                           contract_addresses, user_address, start, duration):
        return {h["handle"]: self.decrypted.get(h["handle"]) for h in handles}

    def create_encrypted_input(self, contract_address, user_address):
        return ("input", contract_address, user_address)

    def get_public_key(self):
        return {"publicKeyId": "pk-1", "publicKey": "deadbeef"}

    def get_public_params(self, bits):
        return {str(bits): {"publicParamsId": "pp-1", "publicParams": "cafe"}}


def make_sdk_module(init_result=True, instance_factory=FakeSdkInstance):
    calls = {"init": 0, "create": []}

    async def init_sdk(options=None):
        calls["init"] += 1
        return init_result

    async def create_instance(config):
        calls["create"].append(config)
        return instance_factory(config)

    module = types.SimpleNamespace(
        init_sdk=init_sdk,
        create_instance=create_instance,
        SEPOLIA_CONFIG={"aclContractAddress": ACL_ADDRESS, "chainId": 11155111},
    )
    module.calls = calls
    return module


class CountingSigner(LocalAccountSigner):
    def __init__(self, account):
        super().__init__(account)
        self.sign_count = 0

    async def sign_typed_data(self, domain, types, message):
        self.sign_count += 1
        return await super().sign_typed_data(domain, types, message)


@pytest.fixture
def signer():
    base = LocalAccountSigner.from_key("0x" + "11" * 32)
    return CountingSigner(base._account)


@pytest.fixture
def other_signer():
    base = LocalAccountSigner.from_key("0x" + "22" * 32)
    return CountingSigner(base._account)


@pytest.fixture
def store():
    return InMemoryStorage()


@pytest.fixture
def node():
    return dev_node()


@pytest.fixture
def mock_runtime(node):
    return MockRuntime(node, 31337, METADATA)


@pytest.fixture
def sdk_module():
    return make_sdk_module()


@pytest.fixture
def registry(sdk_module):
    return RuntimeRegistry("fake_relayer_sdk", importer=lambda name: sdk_module)


@pytest.fixture
def pk_cache():
    return PublicKeyCache(InMemoryStorage())
