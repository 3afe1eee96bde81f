"""
Forensic Ledger Engine - API Routers
"""

from forensic_engine.routers.forensics import router as forensics_router

__all__ = ["forensics_router"]
