"""
Solana history fetching package.

Pages through getSignaturesForAddress for one wallet and resolves each
signature to a raw getTransaction payload for the classifier.
"""

from solana_th_exporter.history.fetcher import HistoryFetcher, RpcClient
from solana_th_exporter.history.models import END_OF_HISTORY, EndOfHistory, SignatureInfo

__all__ = [
    "END_OF_HISTORY",
    "EndOfHistory",
    "HistoryFetcher",
    "RpcClient",
    "SignatureInfo",
]
