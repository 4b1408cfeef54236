"""
Shared ABI and EIP-712 definitions for the escrow and token contracts
"""

from typing import Any, List

# EIP-712 primary types
PERMIT_PRIMARY_TYPE = "Permit"
PAYMENT_INTENT_PRIMARY_TYPE = "PaymentIntent"

# Escrow EIP-712 domain name, must match the contract constructor
ESCROW_DOMAIN_NAME = "X402 Escrow"
DOMAIN_VERSION = "1"

# Both domains carry a version field:
# keccak256("EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)")
EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

# ERC-2612 Permit(owner,spender,value,nonce,deadline)
PERMIT_TYPE = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]

# Field order is hashed by the escrow contract
PAYMENT_INTENT_TYPE = [
    {"name": "paymentId", "type": "bytes32"},
    {"name": "payer", "type": "address"},
    {"name": "recipient", "type": "address"},
    {"name": "amount", "type": "uint256"},
    {"name": "duration", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]

ESCROW_ABI: List[dict[str, Any]] = [
    {
        "name": "createPayment",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "paymentId", "type": "bytes32"},
            {"name": "recipient", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "duration", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "name": "claimPayment",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "paymentId", "type": "bytes32"}],
        "outputs": [],
    },
    {
        "name": "refundPayment",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "paymentId", "type": "bytes32"}],
        "outputs": [],
    },
    {
        "name": "createPaymentWithPermit",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "paymentId", "type": "bytes32"},
            {"name": "payer", "type": "address"},
            {"name": "recipient", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "duration", "type": "uint256"},
            {"name": "deadline", "type": "uint256"},
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
            {"name": "permitV", "type": "uint8"},
            {"name": "permitR", "type": "bytes32"},
            {"name": "permitS", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "name": "getPayment",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "paymentId", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "payer", "type": "address"},
                    {"name": "recipient", "type": "address"},
                    {"name": "amount", "type": "uint256"},
                    {"name": "expiresAt", "type": "uint256"},
                    {"name": "claimed", "type": "bool"},
                    {"name": "refunded", "type": "bool"},
                ],
            }
        ],
    },
    {
        "name": "nonces",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

TOKEN_ABI: List[dict[str, Any]] = [
    {
        "name": "name",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "nonces",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "permit",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
            {"name": "value", "type": "uint256"},
            {"name": "deadline", "type": "uint256"},
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
        ],
        "outputs": [],
    },
]


def get_function_signature(abi: List[dict[str, Any]], method_name: str) -> str:
    """Get the canonical function signature, e.g. ``nonces(address)``.

    Raises:
        ValueError: If the function is not part of the ABI
    """
    func_abi = None
    for item in abi:
        if item.get("type") == "function" and item.get("name") == method_name:
            func_abi = item
            break

    if not func_abi:
        raise ValueError(f"Function '{method_name}' not found in ABI")

    def get_type_string(param: dict[str, Any]) -> str:
        param_type = param["type"]
        if param_type == "tuple":
            component_types = [get_type_string(c) for c in param.get("components", [])]
            return f"({','.join(component_types)})"
        return param_type

    input_types = [get_type_string(inp) for inp in func_abi.get("inputs", [])]
    return f"{method_name}({','.join(input_types)})"
