from __future__ import annotations

import asyncio
import json
from typing import Any, cast

import pytest
import requests

from aa_pipeline.config import ExplorerConfig
from aa_pipeline.deploy.artifacts import BuildInfo, ContractArtifact
from aa_pipeline.deploy.verification import ExplorerVerifier
from aa_pipeline.exceptions import VerificationError

ADDRESS = "0x00000000000000000000000000000000000000c3"


class DummyResponse:
    def __init__(self, body: Any, status_code: int = 200) -> None:
        self._body = body
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class DummySession:
    def __init__(self, post_body: Any, status_bodies: list[Any] | None = None) -> None:
        self._post_body = post_body
        self._status_bodies = list(status_bodies or [])
        self.posts: list[dict[str, Any]] = []
        self.gets: list[dict[str, Any]] = []

    def post(self, url: str, params: dict[str, Any], data: dict[str, Any], timeout: float):
        self.posts.append({"url": url, "params": params, "data": data})
        return DummyResponse(self._post_body)

    def get(self, url: str, params: dict[str, Any], timeout: float):
        self.gets.append(params)
        return DummyResponse(self._status_bodies.pop(0))


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _artifact(with_build_info: bool = True) -> ContractArtifact:
    build_info = BuildInfo(
        solc_version="0.8.24+commit.e11b9ed9",
        standard_input={"language": "Solidity", "sources": {"contracts/PostManager.sol": {}}},
    )
    return ContractArtifact(
        contract_name="PostManager",
        source_name="contracts/PostManager.sol",
        abi=[],
        bytecode="0x6080",
        build_info=build_info if with_build_info else None,
    )


def _verifier(session: DummySession, sleep: RecordingSleep, max_polls: int = 3):
    config = ExplorerConfig(api_key="scan-key", poll_interval=1.5, max_polls=max_polls)
    return ExplorerVerifier(config, cast(requests.Session, session), sleep=sleep)


def test_submits_standard_json_and_polls_until_verified() -> None:
    session = DummySession(
        {"status": "1", "message": "OK", "result": "guid-1"},
        [
            {"status": "0", "result": "Pending in queue"},
            {"status": "1", "result": "Pass - Verified"},
        ],
    )
    sleep = RecordingSleep()

    message = asyncio.run(
        _verifier(session, sleep).verify(ADDRESS, _artifact(), b"\x01", chain_id=11155111)
    )

    assert message == "Pass - Verified"
    submitted = session.posts[0]
    assert submitted["params"] == {"chainid": 11155111}
    assert submitted["data"]["action"] == "verifysourcecode"
    assert submitted["data"]["contractname"] == "contracts/PostManager.sol:PostManager"
    assert submitted["data"]["compilerversion"] == "v0.8.24+commit.e11b9ed9"
    assert submitted["data"]["constructorArguements"] == "01"
    assert json.loads(submitted["data"]["sourceCode"])["language"] == "Solidity"
    assert [params["guid"] for params in session.gets] == ["guid-1", "guid-1"]
    assert sleep.delays == [1.5, 1.5]


def test_already_verified_submission_is_success() -> None:
    session = DummySession({"status": "0", "result": "Contract source code already verified"})

    message = asyncio.run(
        _verifier(session, RecordingSleep()).verify(ADDRESS, _artifact(), b"", chain_id=17000)
    )

    assert "already verified" in message
    assert session.gets == []


def test_rejected_submission_raises() -> None:
    session = DummySession({"status": "0", "result": "Invalid API Key"})

    with pytest.raises(VerificationError, match="Invalid API Key"):
        asyncio.run(
            _verifier(session, RecordingSleep()).verify(ADDRESS, _artifact(), b"", chain_id=17000)
        )


def test_failed_status_raises() -> None:
    session = DummySession(
        {"status": "1", "result": "guid-2"},
        [{"status": "0", "result": "Fail - Unable to verify"}],
    )

    with pytest.raises(VerificationError, match="Unable to verify"):
        asyncio.run(
            _verifier(session, RecordingSleep()).verify(ADDRESS, _artifact(), b"", chain_id=84532)
        )


def test_pending_past_poll_limit_raises() -> None:
    session = DummySession(
        {"status": "1", "result": "guid-3"},
        [{"status": "0", "result": "Pending in queue"}] * 2,
    )

    with pytest.raises(VerificationError, match="still pending"):
        asyncio.run(
            _verifier(session, RecordingSleep(), max_polls=2).verify(
                ADDRESS, _artifact(), b"", chain_id=84532
            )
        )


def test_missing_build_info_raises() -> None:
    session = DummySession({})

    with pytest.raises(VerificationError, match="No build info"):
        asyncio.run(
            _verifier(session, RecordingSleep()).verify(
                ADDRESS, _artifact(with_build_info=False), b"", chain_id=11155111
            )
        )

    assert session.posts == []


def test_unconfigured_verifier() -> None:
    verifier = ExplorerVerifier(ExplorerConfig(), cast(requests.Session, DummySession({})))

    assert not verifier.configured


@pytest.mark.parametrize("body", [["unexpected"], "OK", None])
def test_non_object_submission_response_raises(body: Any) -> None:
    session = DummySession(body)

    with pytest.raises(VerificationError, match="Unexpected explorer response"):
        asyncio.run(
            _verifier(session, RecordingSleep()).verify(ADDRESS, _artifact(), b"", chain_id=17000)
        )


def test_non_object_status_response_raises() -> None:
    session = DummySession({"status": "1", "result": "guid-4"}, [["pending"]])

    with pytest.raises(VerificationError, match="Unexpected explorer response"):
        asyncio.run(
            _verifier(session, RecordingSleep()).verify(ADDRESS, _artifact(), b"", chain_id=17000)
        )
