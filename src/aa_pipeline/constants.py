"""Network registry and protocol constants for the pipeline."""

from dataclasses import dataclass

# ERC-4337 v0.6 singleton EntryPoint
ENTRY_POINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

# eth-infinitism SimpleAccountFactory deployed against the v0.6 EntryPoint
SIMPLE_ACCOUNT_FACTORY_V06 = "0x9406Cc6185a346906296840746125a0E44976454"

# Well-formed signature used while the bundler simulates validation
DUMMY_SIGNATURE = (
    "0x"
    "fffffffffffffffffffffffffffffff000000000000000000000000000000000"
    "7aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
    "1c"
)

ETHERSCAN_API_URL = "https://api.etherscan.io/v2/api"


@dataclass(frozen=True)
class Network:
    """Static description of a supported chain."""

    name: str
    chain_id: int
    alchemy_subdomain: str | None = None
    default_rpc_url: str | None = None
    explorer_url: str | None = None

    def alchemy_url(self, api_key: str) -> str | None:
        if self.alchemy_subdomain is None:
            return None
        return f"https://{self.alchemy_subdomain}.g.alchemy.com/v2/{api_key}"


NETWORKS = {
    "hardhat": Network("hardhat", 31337, default_rpc_url="http://127.0.0.1:8545"),
    "localhost": Network("localhost", 31337, default_rpc_url="http://127.0.0.1:8545"),
    "sepolia": Network(
        "sepolia", 11155111, "eth-sepolia", explorer_url="https://sepolia.etherscan.io"
    ),
    "holesky": Network(
        "holesky", 17000, "eth-holesky", explorer_url="https://holesky.etherscan.io"
    ),
    "base-sepolia": Network(
        "base-sepolia", 84532, "base-sepolia", explorer_url="https://sepolia.basescan.org"
    ),
    "mainnet": Network("mainnet", 1, "eth-mainnet", explorer_url="https://etherscan.io"),
}

# Chains on which explorer verification is attempted; anything absent is skipped
TEST_NETWORK_CHAIN_IDS = frozenset({11155111, 17000, 84532})


def get_network(name: str) -> Network:
    """Look up a network by name.

    Raises:
        KeyError: If the network is not registered
    """
    key = name.lower()
    if key not in NETWORKS:
        raise KeyError(f"Unknown network: {name}")
    return NETWORKS[key]


def is_test_network(chain_id: int) -> bool:
    return chain_id in TEST_NETWORK_CHAIN_IDS
