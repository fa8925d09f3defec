"""Contract deployment with estimation, verification and notification."""

from .artifacts import BuildInfo, ContractArtifact
from .connections import ChainConnection
from .factory import ContractFactory, SignedDeployment
from .gas import GasEstimator
from .orchestrator import DeploymentOrchestrator
from .verification import ExplorerVerifier

__all__ = [
    "BuildInfo",
    "ChainConnection",
    "ContractArtifact",
    "ContractFactory",
    "DeploymentOrchestrator",
    "ExplorerVerifier",
    "GasEstimator",
    "SignedDeployment",
]
