"""
Balance deltas from pre/post snapshots.

Native deltas come from preBalances/postBalances (lamports, index-aligned
with account keys); the fee payer gets the fee added back so the fee never
shows up as a transfer. Token deltas come from pre/postTokenBalances,
attributed to the token account owner and summed per (owner, mint).
Zero deltas are dropped: untouched pairs are absent, not zero.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from solana_th_exporter.classifier.models import (
    NATIVE_CURRENCY,
    BalanceDelta,
    RawTransaction,
    TokenBalance,
    lamports_to_sol,
)
from solana_th_exporter.core.exceptions import MalformedTransaction


def check_snapshots(raw: RawTransaction) -> None:
    """
    Raise MalformedTransaction when a referenced account has no pre/post balance pair.

    Every account key needs a native pre and post balance; every instruction
    and token balance must point at an existing account.
    """
    n_keys = len(raw.account_keys)
    if len(raw.pre_balances) != n_keys:
        raise MalformedTransaction(
            raw.signature,
            f"preBalances has {len(raw.pre_balances)} entries for {n_keys} accounts",
        )
    if len(raw.post_balances) != n_keys:
        raise MalformedTransaction(
            raw.signature,
            f"postBalances has {len(raw.post_balances)} entries for {n_keys} accounts",
        )
    for ix in raw.instructions:
        indexes = list(ix.accounts)
        if ix.program_id_index is not None:
            indexes.append(ix.program_id_index)
        for idx in indexes:
            if not (0 <= idx < n_keys):
                raise MalformedTransaction(
                    raw.signature,
                    f"instruction references account index {idx} without a balance snapshot",
                )
    for tb in raw.pre_token_balances + raw.post_token_balances:
        if not (0 <= tb.account_index < n_keys):
            raise MalformedTransaction(
                raw.signature,
                f"token balance references unknown account index {tb.account_index}",
            )


def native_deltas(raw: RawTransaction) -> list[BalanceDelta]:
    out: list[BalanceDelta] = []
    for i, key in enumerate(raw.account_keys):
        lamports = raw.post_balances[i] - raw.pre_balances[i]
        if i == 0:
            lamports += raw.fee
        if lamports != 0:
            out.append(BalanceDelta(key, NATIVE_CURRENCY, lamports_to_sol(lamports)))
    return out


def token_deltas(raw: RawTransaction) -> list[BalanceDelta]:
    pre_by_index: dict[int, TokenBalance] = {tb.account_index: tb for tb in raw.pre_token_balances}
    post_by_index: dict[int, TokenBalance] = {tb.account_index: tb for tb in raw.post_token_balances}

    raw_totals: defaultdict[tuple[str, str], int] = defaultdict(int)
    decimals_by_mint: dict[str, int] = {}
    for idx in sorted(set(pre_by_index) | set(post_by_index)):
        pre = pre_by_index.get(idx)
        post = post_by_index.get(idx)
        if pre is not None and post is not None and pre.mint != post.mint:
            raise MalformedTransaction(
                raw.signature,
                f"token account {raw.account_keys[idx]} changes mint {pre.mint} -> {post.mint}",
            )
        # Account created (no pre) or closed (no post) inside the transaction counts as zero
        ref = post or pre
        owner = (post.owner if post else None) or (pre.owner if pre else None) or raw.account_keys[idx]
        change = (post.amount if post else 0) - (pre.amount if pre else 0)
        raw_totals[(owner, ref.mint)] += change
        decimals_by_mint.setdefault(ref.mint, ref.decimals)

    out: list[BalanceDelta] = []
    for (owner, mint), change in raw_totals.items():
        if change != 0:
            out.append(BalanceDelta(owner, mint, Decimal(change).scaleb(-decimals_by_mint[mint])))
    return out


def compute_balance_deltas(raw: RawTransaction) -> list[BalanceDelta]:
    """All non-zero deltas, ordered by (account, currency). Raises MalformedTransaction."""
    check_snapshots(raw)
    deltas = native_deltas(raw) + token_deltas(raw)
    return sorted(deltas, key=lambda d: (d.account, d.currency))
