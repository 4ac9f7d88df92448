"""
Solana TH Exporter: wallet transaction history to CSV.

Fetches a wallet's signatures and transactions from Solana RPC, normalizes
each transaction into a transfer record (source, destination, sent/received
amounts and currencies, fee) and writes the records to a CSV file.
"""

__version__ = "0.1.0"
