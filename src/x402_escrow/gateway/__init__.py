"""
Blockchain gateways
"""

from x402_escrow.gateway.base import BlockchainGateway
from x402_escrow.gateway.web3_gateway import Web3Gateway

__all__ = ["BlockchainGateway", "Web3Gateway"]
