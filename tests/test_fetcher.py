"""
Tests for the history fetcher and RPC client with a mocked requests session.

Covers pagination with the `before` cursor, operation limit, null
getTransaction results, retry/backoff and retry exhaustion.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from conftest import VALID_WALLET, make_tx, rpc_response
from solana_th_exporter.core.exceptions import TransientFetchError
from solana_th_exporter.history import END_OF_HISTORY, HistoryFetcher, RpcClient, SignatureInfo

RPC_URL = "https://rpc.example.invalid"


def _history(n: int) -> tuple[list[str], dict]:
    sigs = [f"sig{i:03d}" for i in range(n)]
    txs = {s: make_tx(s, [VALID_WALLET, "Dest111"], [10, 0], [5, 5], fee=0) for s in sigs}
    return sigs, txs


def _client(session, no_sleep, max_retries: int = 3) -> RpcClient:
    return RpcClient(RPC_URL, session=session, max_retries=max_retries, retry_delay_sec=0.5, sleep=no_sleep)


def test_fetcher_pages_with_before_cursor(fake_rpc_session, no_sleep):
    sigs, txs = _history(5)
    session, backend = fake_rpc_session(sigs, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET, page_size=2)

    out = list(fetcher.iter_transactions())

    assert [tx["signature"] for tx in out] == sigs
    pages = backend.method_calls("getSignaturesForAddress")
    assert "before" not in pages[0][1]
    assert pages[1][1]["before"] == "sig001"
    assert pages[2][1]["before"] == "sig003"
    assert fetcher.produced == 5


def test_fetcher_preserves_rpc_order(fake_rpc_session, no_sleep):
    sigs, txs = _history(3)
    session, _ = fake_rpc_session(sigs, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET)
    assert [tx["signature"] for tx in fetcher] == ["sig000", "sig001", "sig002"]


def test_operation_limit_caps_transactions(fake_rpc_session, no_sleep):
    sigs, txs = _history(10)
    session, backend = fake_rpc_session(sigs, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET, operation_limit=3, page_size=1000)

    out = list(fetcher.iter_transactions())

    assert len(out) == 3
    assert len(backend.method_calls("getTransaction")) == 3
    # Signature page request is trimmed to the remaining limit
    assert backend.method_calls("getSignaturesForAddress")[0][1]["limit"] == 3
    assert fetcher.next_batch() is END_OF_HISTORY


def test_operation_limit_zero_means_unlimited(fake_rpc_session, no_sleep):
    sigs, txs = _history(4)
    session, _ = fake_rpc_session(sigs, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET, operation_limit=0)
    assert len(list(fetcher)) == 4


def test_operation_limit_larger_than_history(fake_rpc_session, no_sleep):
    sigs, txs = _history(2)
    session, _ = fake_rpc_session(sigs, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET, operation_limit=50)
    assert len(list(fetcher)) == 2


def test_null_transaction_is_skipped_and_not_counted(fake_rpc_session, no_sleep):
    sigs, txs = _history(3)
    txs["sig001"] = None
    session, _ = fake_rpc_session(sigs, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET)

    out = list(fetcher)

    assert [tx["signature"] for tx in out] == ["sig000", "sig002"]
    assert fetcher.unavailable == 1
    assert fetcher.produced == 2


def test_empty_history_ends_immediately(fake_rpc_session, no_sleep):
    session, _ = fake_rpc_session([], {})
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET)
    assert fetcher.next_batch() is END_OF_HISTORY
    assert list(fetcher) == []


def _paged_session(pages: list[list[dict]], txs: dict):
    """Session serving fixed getSignaturesForAddress pages in order."""
    remaining = list(pages)

    def _post(url, json=None, timeout=None):
        if json["method"] == "getSignaturesForAddress":
            return rpc_response(remaining.pop(0) if remaining else [])
        return rpc_response(txs.get(json["params"][0]))

    session = MagicMock()
    session.post.side_effect = _post
    return session


def test_invalid_signature_item_does_not_end_history(no_sleep):
    txs = {}
    for s in ("s0", "s2", "s9"):
        txs[s] = make_tx(s, [VALID_WALLET, "Dest111"], [10, 0], [5, 5], fee=0)
    pages = [
        [
            {"signature": "s0", "slot": 3},
            {"signature": "s1", "slot": "bad"},
            {"signature": "s2", "slot": 1},
        ],
        [{"signature": "s9", "slot": 0}],
    ]
    session = _paged_session(pages, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET, page_size=3)

    assert [tx["signature"] for tx in fetcher] == ["s0", "s2", "s9"]
    sig_calls = [
        c.kwargs["json"]["params"][1]
        for c in session.post.call_args_list
        if c.kwargs["json"]["method"] == "getSignaturesForAddress"
    ]
    assert sig_calls[1]["before"] == "s2"


def test_page_of_only_invalid_items_keeps_paging(no_sleep):
    txs = {"s9": make_tx("s9", [VALID_WALLET, "Dest111"], [10, 0], [5, 5], fee=0)}
    pages = [
        [{"signature": "s0", "slot": "x"}, {"signature": "s1", "slot": "y"}],
        [{"signature": "s9", "slot": 0}],
    ]
    session = _paged_session(pages, txs)
    fetcher = HistoryFetcher(_client(session, no_sleep), VALID_WALLET, page_size=2)

    assert fetcher.next_batch() == []
    assert [tx["signature"] for tx in fetcher] == ["s9"]


def test_block_time_filled_from_signature_info(fake_rpc_session, no_sleep):
    sigs, txs = _history(1)
    txs["sig000"]["blockTime"] = None
    session, _ = fake_rpc_session(sigs, txs)
    out = list(HistoryFetcher(_client(session, no_sleep), VALID_WALLET))
    assert out[0]["blockTime"] == 1_700_000_000


def test_rpc_client_retries_then_succeeds(no_sleep):
    session = MagicMock()
    session.post.side_effect = [
        requests.ConnectionError("boom"),
        rpc_response(status=429),
        rpc_response({"value": 1}),
    ]
    client = _client(session, no_sleep, max_retries=5)

    assert client.call("getSlot", []) == {"value": 1}
    assert session.post.call_count == 3
    assert no_sleep.delays == [0.5, 1.0]


def test_rpc_client_retries_rpc_error_object(no_sleep):
    session = MagicMock()
    session.post.side_effect = [
        rpc_response(error={"code": -32005, "message": "Node is behind"}),
        rpc_response([]),
    ]
    client = _client(session, no_sleep)
    assert client.call("getSignaturesForAddress", [VALID_WALLET, {"limit": 1}]) == []


def test_rpc_client_raises_transient_error_after_retries(no_sleep):
    session = MagicMock()
    session.post.side_effect = requests.Timeout("timed out")
    client = _client(session, no_sleep, max_retries=3)

    with pytest.raises(TransientFetchError) as exc:
        client.call("getTransaction", ["sig"])

    assert exc.value.method == "getTransaction"
    assert exc.value.attempts == 3
    assert session.post.call_count == 3
    assert len(no_sleep.delays) == 2


def test_fetch_error_propagates_from_fetcher(no_sleep):
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("down")
    fetcher = HistoryFetcher(_client(session, no_sleep, max_retries=2), VALID_WALLET)
    with pytest.raises(TransientFetchError):
        list(fetcher)


def test_fetcher_rejects_bad_arguments(no_sleep):
    client = _client(MagicMock(), no_sleep)
    with pytest.raises(ValueError):
        HistoryFetcher(client, VALID_WALLET, operation_limit=-1)
    with pytest.raises(ValueError):
        HistoryFetcher(client, VALID_WALLET, page_size=1001)
    with pytest.raises(ValueError):
        HistoryFetcher(client, "  ")


def test_signature_info_from_rpc_item():
    info = SignatureInfo.from_rpc_item(
        {"signature": "abc", "slot": "12", "blockTime": 1, "err": None, "confirmationStatus": "finalized"}
    )
    assert info.slot == 12
    assert info.block_time == 1
    assert info.confirmation_status == "finalized"
    assert info.memo is None
