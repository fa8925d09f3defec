"""Smart account provisioning and UserOperation handling."""

from .client import SmartAccountClient
from .connections import RpcConnection
from .provisioner import derive_signer, describe_account, provision_account
from .user_operation import UserOperation, UserOperationGas

__all__ = [
    "RpcConnection",
    "SmartAccountClient",
    "UserOperation",
    "UserOperationGas",
    "derive_signer",
    "describe_account",
    "provision_account",
]
