#!/usr/bin/env python3
"""
Add Validator (One Command Setup)

Connects to PROVIDER, funds the stash and controller accounts, bonds
BOND_VALUE, registers freshly rotated session keys and sets the reward
commission. All settings come from the environment or a .env file,
see .env.example.

Requirements:
    pip install -e .

Usage:
    python3 scripts/add_validator.py                  # accounts from mnemonics
    python3 scripts/add_validator.py --new-accounts   # generate + faucet
"""

import sys

try:
    from validator_ops.validator import main
except ImportError:
    print("ERROR: Missing dependency. Run:")
    print("  pip install -e .")
    sys.exit(1)


if __name__ == "__main__":
    sys.exit(main())
