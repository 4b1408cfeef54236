"""
FastAPI middleware for x402 escrow payments
"""

from x402_escrow.fastapi.middleware import (
    CheckOnlyConfig,
    GateConfig,
    X402Middleware,
    x402_check_only,
    x402_protected,
)

__all__ = ["CheckOnlyConfig", "GateConfig", "X402Middleware", "x402_check_only", "x402_protected"]
