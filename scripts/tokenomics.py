#!/usr/bin/env python3
"""
Tokenomics emulation - transfer and balances

Sends native tokens from a seed phrase to an address and prints the
sender, recipient and treasury balances afterwards.

Requirements:
    pip install -e .

Usage:
    python3 scripts/tokenomics.py --config network.json \
        --seed "<12 words>" --to 5F... --amount 10
"""

import sys

try:
    from validator_ops.tokenomics import main
except ImportError:
    print("ERROR: Missing dependency. Run:")
    print("  pip install -e .")
    sys.exit(1)


if __name__ == "__main__":
    sys.exit(main())
