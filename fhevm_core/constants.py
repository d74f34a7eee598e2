# fhevm_core/constants.py

# Local dev node chain id and its conventional endpoint.
DEFAULT_MOCK_CHAINS = {31337: "http://localhost:8545"}

# Substring of web3_clientVersion identifying a local development node.
DEV_NODE_MARKER = "hardhat"

DEFAULT_SDK_MODULE = "fhevm_relayer_sdk"
SDK_CONFIG_ATTR = "SEPOLIA_CONFIG"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

GRANT_DURATION_DAYS = 365
SECONDS_PER_DAY = 24 * 60 * 60

PUBLIC_PARAMS_BITS = 2048
PUBLIC_KEY_PREFIX = "fhevm.publicKey"

# EIP-712 envelope for user decryption requests
EIP712_PRIMARY_TYPE = "UserDecryptRequestVerification"
EIP712_DOMAIN_NAME = "Decryption"
EIP712_DOMAIN_VERSION = "1"
USER_DECRYPT_FIELDS = [
    {"name": "publicKey", "type": "bytes"},
    {"name": "contractAddresses", "type": "address[]"},
    {"name": "contractsChainId", "type": "uint256"},
    {"name": "startTimestamp", "type": "uint256"},
    {"name": "durationDays", "type": "uint256"},
]
EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

# Defaults used by the local dev node's mock coprocessor
MOCK_GATEWAY_CHAIN_ID = 55815
MOCK_DECRYPTION_VERIFIER = "0x5ffdaAB0373E62E2ea2944776209aEf29E631A64"
MOCK_RPC_GET_CLEARTEXTS = "fhevm_getClearTextValues"
MOCK_RPC_REGISTER_CLEARTEXTS = "fhevm_registerClearTextValues"
