"""
Core cross-cutting pieces: the exception taxonomy shared by fetcher, classifier and sink.
"""

from solana_th_exporter.core.exceptions import (
    ExporterError,
    InvalidAddressError,
    MalformedTransaction,
    MetadataResolutionFailure,
    OutputWriteError,
    TransientFetchError,
)

__all__ = [
    "ExporterError",
    "InvalidAddressError",
    "MalformedTransaction",
    "MetadataResolutionFailure",
    "OutputWriteError",
    "TransientFetchError",
]
