"""
Pytest fixtures for exporter tests: getTransaction payload builders and a
fake Solana JSON-RPC session for the fetcher.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
VALID_WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"


def token_balance(index: int, mint: str, owner: str | None, amount: int, decimals: int) -> dict[str, Any]:
    """preTokenBalances / postTokenBalances entry."""
    entry: dict[str, Any] = {
        "accountIndex": index,
        "mint": mint,
        "uiTokenAmount": {
            "amount": str(amount),
            "decimals": decimals,
            "uiAmount": amount / (10 ** decimals),
            "uiAmountString": str(amount / (10 ** decimals)),
        },
    }
    if owner is not None:
        entry["owner"] = owner
    return entry


def make_tx(
    signature: str,
    keys: list[str],
    pre: list[int],
    post: list[int],
    *,
    fee: int = 5000,
    pre_tokens: list[dict[str, Any]] | None = None,
    post_tokens: list[dict[str, Any]] | None = None,
    instructions: list[dict[str, Any]] | None = None,
    inner: list[dict[str, Any]] | None = None,
    block_time: int | None = 1_700_000_000,
    err: Any = None,
) -> dict[str, Any]:
    """Build a getTransaction (encoding=json) result."""
    return {
        "slot": 250_000_000,
        "blockTime": block_time,
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": list(keys),
                "header": {"numRequiredSignatures": 1},
                "instructions": instructions or [],
            },
        },
        "meta": {
            "err": err,
            "fee": fee,
            "preBalances": list(pre),
            "postBalances": list(post),
            "preTokenBalances": pre_tokens or [],
            "postTokenBalances": post_tokens or [],
            "innerInstructions": inner or [],
        },
    }


def rpc_response(result: Any = None, error: dict[str, Any] | None = None, status: int = 200) -> MagicMock:
    """requests.Response-like mock for a JSON-RPC reply."""
    resp = MagicMock()
    resp.status_code = status
    body: dict[str, Any] = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    resp.json.return_value = body
    if status >= 400:
        import requests

        resp.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    else:
        resp.raise_for_status.return_value = None
    return resp


class FakeSolanaRpc:
    """
    In-memory getSignaturesForAddress / getTransaction backend.

    signatures are newest first, like the real RPC; transactions maps
    signature -> getTransaction result (missing or None -> null result).
    """

    def __init__(self, signatures: list[str], transactions: dict[str, Any]) -> None:
        self.signatures = list(signatures)
        self.transactions = dict(transactions)
        self.calls: list[tuple[str, list[Any]]] = []

    def post(self, url: str, json: dict[str, Any] | None = None, timeout: float | None = None) -> MagicMock:
        method = json["method"]
        params = json["params"]
        self.calls.append((method, params))
        if method == "getSignaturesForAddress":
            opts = params[1]
            start = 0
            before = opts.get("before")
            if before is not None:
                start = self.signatures.index(before) + 1
            page = self.signatures[start:start + opts["limit"]]
            return rpc_response(
                [
                    {"signature": s, "slot": 1000 - i, "blockTime": 1_700_000_000 - i, "err": None}
                    for i, s in enumerate(page, start=start)
                ]
            )
        if method == "getTransaction":
            return rpc_response(self.transactions.get(params[0]))
        return rpc_response(None)

    def method_calls(self, method: str) -> list[list[Any]]:
        return [params for m, params in self.calls if m == method]


@pytest.fixture
def fake_rpc_session():
    """Factory: (signatures, transactions) -> (session mock, FakeSolanaRpc)."""

    def _make(signatures: list[str], transactions: dict[str, Any]):
        backend = FakeSolanaRpc(signatures, transactions)
        session = MagicMock()
        session.post.side_effect = backend.post
        return session, backend

    return _make


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: list[float] = []

    def _sleep(sec: float) -> None:
        delays.append(sec)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
