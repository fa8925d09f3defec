"""Etherscan-compatible source verification."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import requests

from ..config import ExplorerConfig
from ..exceptions import VerificationError
from ..retry import Sleep
from .artifacts import ContractArtifact

logger = logging.getLogger(__name__)


class ExplorerVerifier:
    """Submit standard-JSON sources and poll until the explorer decides."""

    def __init__(
        self,
        config: ExplorerConfig,
        session: requests.Session | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self._config.api_key)

    async def verify(
        self,
        address: str,
        artifact: ContractArtifact,
        constructor_args: bytes,
        *,
        chain_id: int,
    ) -> str:
        """Verify *address*; returns the explorer's final message.

        Raises:
            VerificationError: If the explorer rejects or never confirms
        """
        build_info = artifact.build_info
        if build_info is None:
            raise VerificationError(
                f"No build info available for {artifact.contract_name}",
                details={"address": address},
            )

        form = {
            "apikey": self._config.api_key,
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": address,
            "sourceCode": json.dumps(build_info.standard_input),
            "codeformat": "solidity-standard-json-input",
            "contractname": artifact.fully_qualified_name,
            "compilerversion": build_info.compiler_tag,
            # Etherscan spells this parameter with the typo
            "constructorArguements": constructor_args.hex(),
        }
        body = await asyncio.to_thread(self._post, chain_id, form)
        message = str(body.get("result", ""))

        if str(body.get("status")) != "1":
            if "already verified" in message.lower():
                logger.info("Contract %s is already verified", address)
                return message
            raise VerificationError(
                f"Verification submission rejected: {message}",
                details={"address": address, "response": body},
            )

        guid = message
        logger.info("Verification submitted for %s (guid=%s)", address, guid)
        return await self._poll_status(address, guid, chain_id)

    async def _poll_status(self, address: str, guid: str, chain_id: int) -> str:
        params = {
            "apikey": self._config.api_key,
            "module": "contract",
            "action": "checkverifystatus",
            "guid": guid,
        }
        for attempt in range(self._config.max_polls):
            await self._sleep(self._config.poll_interval)
            body = await asyncio.to_thread(self._get, chain_id, params)
            message = str(body.get("result", ""))

            if str(body.get("status")) == "1" or "already verified" in message.lower():
                logger.info("Contract %s verified: %s", address, message)
                return message
            if "pending" in message.lower():
                logger.debug(
                    "Verification pending for %s (poll %s/%s)",
                    address,
                    attempt + 1,
                    self._config.max_polls,
                )
                continue
            raise VerificationError(
                f"Verification failed: {message}", details={"address": address, "guid": guid}
            )

        raise VerificationError(
            f"Verification still pending after {self._config.max_polls} polls",
            details={"address": address, "guid": guid},
        )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    def _post(self, chain_id: int, form: Mapping[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.post(
                self._config.api_url,
                params={"chainid": chain_id},
                data=dict(form),
                timeout=self._config.request_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise VerificationError(
                f"Explorer request failed: {exc}", details={"error": str(exc)}
            ) from exc
        return _require_object(body)

    def _get(self, chain_id: int, params: Mapping[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.get(
                self._config.api_url,
                params={"chainid": chain_id, **params},
                timeout=self._config.request_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise VerificationError(
                f"Explorer request failed: {exc}", details={"error": str(exc)}
            ) from exc
        return _require_object(body)


def _require_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise VerificationError(
            f"Unexpected explorer response: {body!r}", details={"response": body}
        )
    return body
