"""
Main entrypoint: export a wallet's transaction history to CSV.

    python main.py -a <Solana Wallet Address> [-o <operation limit>] [--output transactions.csv]

Env: SOLANA_RPC_URL or HELIUS_API_KEY (+ SOLANA_NETWORK), LOG_LEVEL, LOG_FORMAT.
"""

from solana_th_exporter.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
