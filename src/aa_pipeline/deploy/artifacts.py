"""Loading of Hardhat compilation artifacts."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..exceptions import ConfigurationError
from ..utils import is_hex_data, normalise_hex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildInfo:
    """Compiler input needed by explorer verification."""

    solc_version: str
    standard_input: Mapping[str, Any]

    @property
    def compiler_tag(self) -> str:
        return f"v{self.solc_version}"


@dataclass(frozen=True)
class ContractArtifact:
    """ABI and creation bytecode of a compiled contract."""

    contract_name: str
    source_name: str
    abi: Sequence[Mapping[str, Any]]
    bytecode: str
    build_info: BuildInfo | None = field(default=None, compare=False)

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"

    def constructor_input_types(self) -> list[str]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [_abi_type(item) for item in entry.get("inputs", [])]
        return []

    def view_functions(self) -> set[str]:
        """Names of zero-argument view functions."""
        return {
            str(entry["name"])
            for entry in self.abi
            if entry.get("type") == "function"
            and entry.get("stateMutability") in ("view", "pure")
            and not entry.get("inputs")
        }

    def output_types(self, function_name: str) -> list[str]:
        for entry in self.abi:
            if entry.get("type") == "function" and entry.get("name") == function_name:
                return [_abi_type(item) for item in entry.get("outputs", [])]
        raise KeyError(function_name)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], build_info: BuildInfo | None = None
    ) -> ContractArtifact:
        bytecode = data.get("bytecode")
        if isinstance(bytecode, Mapping):  # solc JSON output nests the object
            bytecode = bytecode.get("object")
        if not isinstance(bytecode, str) or not is_hex_data(bytecode) or len(bytecode) <= 2:
            raise ConfigurationError("Artifact has no deployable bytecode", field="bytecode")

        abi = data.get("abi")
        if not isinstance(abi, list):
            raise ConfigurationError("Artifact ABI must be a list", field="abi")

        return cls(
            contract_name=str(data.get("contractName", "Contract")),
            source_name=str(data.get("sourceName", "")),
            abi=abi,
            bytecode=normalise_hex(bytecode),
            build_info=build_info,
        )

    @classmethod
    def load(cls, path: str | Path) -> ContractArtifact:
        """Read ``<Name>.json`` and, when present, the build-info behind it."""

        artifact_path = Path(path)
        try:
            data = json.loads(artifact_path.read_text())
        except FileNotFoundError as exc:
            raise ConfigurationError(
                f"Contract artifact not found: {artifact_path}; compile the contracts first",
                field="artifact_path",
            ) from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                f"Contract artifact is not valid JSON: {artifact_path}", field="artifact_path"
            ) from exc

        return cls.from_dict(data, build_info=_load_build_info(artifact_path))


def _load_build_info(artifact_path: Path) -> BuildInfo | None:
    debug_path = artifact_path.with_suffix(".dbg.json")
    if not debug_path.exists():
        logger.debug("No debug file next to %s; verification source unavailable", artifact_path)
        return None

    try:
        debug = json.loads(debug_path.read_text())
        build_info_path = (debug_path.parent / debug["buildInfo"]).resolve()
        build_info = json.loads(build_info_path.read_text())
        return BuildInfo(
            solc_version=str(build_info["solcLongVersion"]),
            standard_input=build_info["input"],
        )
    except (OSError, KeyError, TypeError, json.JSONDecodeError) as exc:
        logger.warning("Unable to read build info for %s: %s", artifact_path, exc)
        return None


def _abi_type(item: Mapping[str, Any]) -> str:
    kind = str(item["type"])
    if kind.startswith("tuple"):
        components = ",".join(_abi_type(component) for component in item.get("components", []))
        return f"({components}){kind[len('tuple'):]}"
    return kind
