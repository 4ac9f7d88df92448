"""
History fetcher: getSignaturesForAddress pages → getTransaction payloads.

Responsibilities:
- Page through an address's signatures (newest first) with the `before` cursor.
- Resolve each signature to a raw getTransaction result (JSON encoding).
- Stop after operation_limit raw transactions; None means unlimited.
- Retry RPC calls with exponential backoff; raise TransientFetchError when
  retries are exhausted.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Iterator

import requests

from solana_th_exporter.config.env import mask_rpc_url
from solana_th_exporter.config.settings import Settings
from solana_th_exporter.core.exceptions import TransientFetchError
from solana_th_exporter.exporter_logging import get_logger
from solana_th_exporter.history.models import END_OF_HISTORY, EndOfHistory, SignatureInfo

logger = get_logger(__name__)

# JSON-RPC request id counter
_request_id = 0


def _next_id() -> int:
    global _request_id
    _request_id += 1
    return _request_id


def _build_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": _next_id(),
        "method": method,
        "params": params,
    }


class RpcClient:
    """
    Minimal synchronous Solana JSON-RPC client with retry and backoff.

    Shared by the history fetcher and the token metadata resolver.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        request_timeout_sec: float = 30.0,
        max_retries: int = 5,
        retry_delay_sec: float = 1.0,
        max_retry_delay_sec: float = 30.0,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._rpc_url = rpc_url.rstrip("/")
        self._timeout = request_timeout_sec
        self._max_retries = max_retries
        self._min_retry_delay = retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "RpcClient":
        return cls(
            settings.rpc_url,
            request_timeout_sec=settings.request_timeout_sec,
            max_retries=settings.max_retries,
            retry_delay_sec=settings.retry_delay_sec,
            max_retry_delay_sec=settings.max_retry_delay_sec,
            **kwargs,
        )

    def call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call and return its `result` (may be None).

        Transport errors, HTTP error statuses (429, 5xx, ...), undecodable bodies and
        JSON-RPC error objects are retried; the last failure is raised as
        TransientFetchError.
        """
        delay = self._min_retry_delay
        last_error = "no attempt made"
        for attempt in range(1, self._max_retries + 1):
            try:
                resp = self._session.post(
                    self._rpc_url,
                    json=_build_rpc_body(method, params),
                    timeout=self._timeout,
                )
                resp.raise_for_status()
                data = resp.json()
            except (requests.RequestException, ValueError) as e:
                last_error = str(e)
            else:
                err = data.get("error") if isinstance(data, dict) else "non-object response"
                if not err:
                    return data.get("result")
                if isinstance(err, dict):
                    last_error = f"Solana RPC error: {err.get('message', err)} (code={err.get('code')})"
                else:
                    last_error = str(err)

            if attempt < self._max_retries:
                logger.warning(
                    "rpc_retry",
                    method=method,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    delay_sec=delay,
                    error=last_error,
                )
                self._sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)

        logger.error(
            "rpc_give_up",
            method=method,
            max_retries=self._max_retries,
            rpc_url=mask_rpc_url(self._rpc_url),
            error=last_error,
        )
        raise TransientFetchError(method, last_error, attempts=self._max_retries)

    def close(self) -> None:
        self._session.close()


class HistoryFetcher:
    """
    Lazy, consume-once source of raw transactions for one address.

    next_batch() returns the next list of getTransaction results (possibly
    empty when every signature on a page was unavailable) or END_OF_HISTORY.
    Order is whatever the RPC returns (newest first).
    """

    def __init__(
        self,
        client: RpcClient,
        address: str,
        *,
        operation_limit: int | None = None,
        page_size: int = 1000,
        commitment: str = "confirmed",
    ) -> None:
        if not address.strip():
            raise ValueError("address must be non-empty")
        if operation_limit is not None and operation_limit < 0:
            raise ValueError("operation_limit must be >= 0")
        if not (1 <= page_size <= 1000):
            raise ValueError("page_size must be between 1 and 1000")
        self._client = client
        self._address = address
        # 0 behaves like "no limit", same as the CLI default
        self._limit = operation_limit or None
        self._page_size = page_size
        self._commitment = commitment

        self._before: str | None = None
        self._exhausted = False
        self.produced = 0
        """Raw transactions handed out so far."""
        self.unavailable = 0
        """Signatures whose getTransaction result was null."""

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        address: str,
        operation_limit: int | None = None,
        client: RpcClient | None = None,
    ) -> "HistoryFetcher":
        return cls(
            client or RpcClient.from_settings(settings),
            address,
            operation_limit=operation_limit,
            page_size=settings.signatures_page_size,
            commitment=settings.commitment,
        )

    def _limit_reached(self) -> bool:
        return self._limit is not None and self.produced >= self._limit

    def _get_signatures(self, limit: int) -> tuple[list[SignatureInfo], int, str | None]:
        """
        One getSignaturesForAddress page.

        Returns (parsed infos, raw item count, last signature on the page).
        Unparseable items are dropped from infos but still count towards the
        page size and the paging cursor.
        """
        opts: dict[str, Any] = {"limit": limit, "commitment": self._commitment}
        if self._before is not None:
            opts["before"] = self._before
        result = self._client.call("getSignaturesForAddress", [self._address, opts])
        items = result if isinstance(result, list) else []
        infos: list[SignatureInfo] = []
        last_signature: str | None = None
        for item in items:
            sig = item.get("signature") if isinstance(item, dict) else None
            if isinstance(sig, str) and sig:
                last_signature = sig
            else:
                logger.warning("fetch_skip_invalid_signature_item", error="missing signature")
                continue
            try:
                infos.append(SignatureInfo.from_rpc_item(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("fetch_skip_invalid_signature_item", signature=sig, error=str(e))
        return infos, len(items), last_signature

    def _get_transaction(self, info: SignatureInfo) -> dict[str, Any] | None:
        params = [
            info.signature,
            {
                "encoding": "json",
                "commitment": self._commitment,
                "maxSupportedTransactionVersion": 0,
            },
        ]
        result = self._client.call("getTransaction", params)
        if not isinstance(result, dict):
            return None
        out = dict(result)
        out.setdefault("signature", info.signature)
        if out.get("blockTime") is None and info.block_time is not None:
            out["blockTime"] = info.block_time
        return out

    def next_batch(self) -> list[dict[str, Any]] | EndOfHistory:
        """Fetch one signatures page and resolve it; END_OF_HISTORY when done or limit reached."""
        if self._exhausted or self._limit_reached():
            return END_OF_HISTORY

        request_limit = self._page_size
        if self._limit is not None:
            request_limit = min(request_limit, self._limit - self.produced)

        infos, page_count, last_signature = self._get_signatures(request_limit)
        if page_count == 0:
            self._exhausted = True
            logger.info("fetch_end_of_history", wallet_id=self._address, produced=self.produced)
            return END_OF_HISTORY
        if page_count < request_limit:
            # Short page: the RPC has nothing older
            self._exhausted = True
        elif last_signature is None:
            # No item carries a signature, so there is no cursor for the next page
            self._exhausted = True
            logger.warning("fetch_no_paging_cursor", wallet_id=self._address, produced=self.produced)
        self._before = last_signature

        batch: list[dict[str, Any]] = []
        for info in infos:
            if self._limit_reached():
                break
            raw = self._get_transaction(info)
            if raw is None:
                self.unavailable += 1
                logger.warning("fetch_tx_unavailable", signature=info.signature)
                continue
            batch.append(raw)
            self.produced += 1
        logger.info(
            "fetch_batch",
            wallet_id=self._address,
            signatures=len(infos),
            transactions=len(batch),
            produced=self.produced,
            limit=self._limit,
        )
        if self._limit_reached():
            logger.info("fetch_limit_reached", limit=self._limit)
        return batch

    def iter_transactions(self) -> Iterator[dict[str, Any]]:
        """Yield raw transactions one at a time until END_OF_HISTORY."""
        while True:
            batch = self.next_batch()
            if batch is END_OF_HISTORY:
                return
            yield from batch

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return self.iter_transactions()
