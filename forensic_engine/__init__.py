"""
Forensic Ledger Engine

Benford screening, transaction risk scoring, anomaly detection, damage
calculation and chain-of-custody management for forensic investigations.
"""

__version__ = "0.1.0"
