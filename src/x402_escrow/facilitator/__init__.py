"""
x402 escrow facilitator
"""

from x402_escrow.facilitator.facilitator_client import FacilitatorClient
from x402_escrow.facilitator.monitor import MonitoredPayment, PaymentMonitor
from x402_escrow.facilitator.x402_facilitator import PaymentFacilitator

__all__ = ["FacilitatorClient", "MonitoredPayment", "PaymentFacilitator", "PaymentMonitor"]
