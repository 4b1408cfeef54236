"""
Facilitator entry point for local development.

Equivalent to the ``x402-facilitator`` console script, but also reads the
repository-level .env file.
"""

from pathlib import Path

from x402_escrow.config import FacilitatorSettings
from x402_escrow.facilitator.app import main

if __name__ == "__main__":
    main(FacilitatorSettings.from_env(Path(__file__).parent.parent.parent.parent / ".env"))
