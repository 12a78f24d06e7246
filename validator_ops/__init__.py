"""Validator setup and tokenomics emulation scripts for Substrate based networks."""

__version__ = '0.1.0'
