"""
Pytest configuration and test fixtures
"""

import pytest
from eth_account import Account
from fake_chain import CHAIN_ID, ESCROW_ADDRESS, TOKEN_ADDRESS, TOKEN_NAME, FakeChain

from x402_escrow.clients.x402_http_client import create_payment_payload
from x402_escrow.config import FacilitatorSettings, X402Config
from x402_escrow.facilitator.x402_facilitator import PaymentFacilitator
from x402_escrow.signatures import SignatureEngine, SigningConfig
from x402_escrow.types import PaymentRequirements

# Hardhat development accounts
FACILITATOR_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
PAYER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
RECIPIENT_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"

ONE_ETH = 10**18
INITIAL_TOKENS = 1_000 * 10**6


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def facilitator_key():
    return FACILITATOR_KEY


@pytest.fixture
def payer_key():
    return PAYER_KEY


@pytest.fixture
def recipient_key():
    return RECIPIENT_KEY


@pytest.fixture
def facilitator_address():
    return Account.from_key(FACILITATOR_KEY).address


@pytest.fixture
def payer_address():
    return Account.from_key(PAYER_KEY).address


@pytest.fixture
def recipient_address():
    return Account.from_key(RECIPIENT_KEY).address


@pytest.fixture
def chain(facilitator_address, payer_address, recipient_address):
    """Chain where the payer holds tokens but no ETH"""
    fake = FakeChain()
    fake.fund(facilitator_address, ONE_ETH)
    fake.fund(recipient_address, ONE_ETH)
    fake.mint(payer_address, INITIAL_TOKENS)
    return fake


@pytest.fixture
def x402_config():
    return X402Config(
        rpcUrl="http://127.0.0.1:8545",
        chainId=CHAIN_ID,
        tokenAddress=TOKEN_ADDRESS,
        escrowAddress=ESCROW_ADDRESS,
    )


@pytest.fixture
def settings(x402_config):
    return FacilitatorSettings(
        **x402_config.model_dump(by_alias=True), facilitatorPrivateKey=FACILITATOR_KEY
    )


@pytest.fixture
def engine(chain):
    return SignatureEngine(
        chain,
        SigningConfig(
            tokenAddress=TOKEN_ADDRESS,
            tokenName=TOKEN_NAME,
            escrowAddress=ESCROW_ADDRESS,
            chainId=CHAIN_ID,
        ),
    )


@pytest.fixture
def facilitator(x402_config, chain):
    return PaymentFacilitator(x402_config, chain, clock=chain.clock, poll_interval=0.01)


@pytest.fixture
def requirements(recipient_address):
    return PaymentRequirements(
        scheme="evm-permit",
        network=f"eip155:{CHAIN_ID}",
        maxAmountRequired="1000000",
        resource="/premium",
        description="Premium data",
        mimeType="application/json",
        payTo=recipient_address,
        asset=TOKEN_ADDRESS,
        maxTimeoutSeconds=3600,
    )


@pytest.fixture
def sign_payment(engine, payer_key, requirements):
    """Async factory for payer-signed PaymentPayloads"""

    async def _sign(key=None, payment_id=None, **overrides):
        reqs = requirements.model_copy(update=overrides) if overrides else requirements
        return await create_payment_payload(engine, key or payer_key, reqs, payment_id)

    return _sign
