"""Bind a private key to its counterfactual smart account."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..config import AccountConfig
from ..exceptions import ConfigurationError, PipelineError, ProvisioningError
from .client import SmartAccountClient
from .connections import RpcConnection
from .user_operation import GET_ADDRESS_SELECTOR

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[str, float], RpcConnection]


def _default_connection(rpc_url: str, request_timeout: float) -> RpcConnection:
    return RpcConnection(rpc_url, request_timeout=request_timeout)


def derive_signer(private_key: str) -> LocalAccount:
    """Return the local signer for *private_key*."""
    try:
        return cast(LocalAccount, Account.from_key(private_key))
    except Exception as exc:
        raise ConfigurationError(
            "PRIVATE_KEY is not a valid secp256k1 private key",
            field="private_key",
            details={"error": type(exc).__name__},
        ) from exc


async def provision_account(
    config: AccountConfig,
    *,
    connection_factory: ConnectionFactory = _default_connection,
) -> SmartAccountClient:
    """Create a :class:`SmartAccountClient` for the configured signer.

    Credentials are checked before any network access. Provider failures
    surface as :class:`ProvisioningError` and are not retried here.
    """

    config.validate()
    network = config.resolved_network
    signer = derive_signer(cast(str, config.private_key))
    rpc_url = config.resolved_rpc_url()

    connection = connection_factory(rpc_url, config.request_timeout)
    await connection.connect()

    try:
        chain_id = await connection.chain_id()
        if chain_id != network.chain_id:
            raise ProvisioningError(
                f"Provider serves chain {chain_id}, expected {network.name} ({network.chain_id})",
                details={"chain_id": chain_id, "expected": network.chain_id},
            )
        (account_address,) = await connection.call(
            config.factory_address,
            GET_ADDRESS_SELECTOR,
            ["address", "uint256"],
            [signer.address, config.salt],
            ["address"],
        )
    except PipelineError:
        await connection.disconnect()
        raise
    except Exception as exc:
        await connection.disconnect()
        raise ProvisioningError(
            "Account provider rejected smart account lookup",
            details={"factory": config.factory_address, "error": str(exc)},
        ) from exc

    client = SmartAccountClient(
        signer,
        connection,
        account_address=Web3.to_checksum_address(account_address),
        chain_id=chain_id,
        entry_point=config.entry_point,
        factory_address=config.factory_address,
        salt=config.salt,
        priority_fee_method=config.priority_fee_method,
    )

    logger.info("Smart account address: %s", client.address())
    logger.info("Owner address: %s", client.owner)
    logger.info("Network: %s (chain %s)", network.name, chain_id)
    logger.info("EntryPoint: %s", client.entry_point)
    return client


async def describe_account(client: SmartAccountClient) -> dict[str, object]:
    """Summarise the account, including whether it is already deployed."""

    try:
        deployed = await client.is_deployed()
    except Exception as exc:
        raise ProvisioningError(
            "Failed to query smart account code", details={"error": str(exc)}
        ) from exc

    if deployed:
        logger.info("Smart account is already deployed")
    else:
        logger.info("Smart account will be deployed with its first operation")
    return {**client.describe(), "deployed": deployed}
