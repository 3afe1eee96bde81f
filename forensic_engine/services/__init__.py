"""
Forensic Ledger Engine - Services
"""
