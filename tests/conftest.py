"""Global test configuration — runs before any test module imports."""
import os

import pytest

# Apps built from the environment in tests run without rate limits
os.environ["RATELIMIT_ENABLED"] = "False"

ISSUER = "0x1111111111111111111111111111111111111111"
ALICE = "0xa11ce00000000000000000000000000000000a11"
VERIFIER = "0x7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e"


@pytest.fixture
def store():
    from neuralhash.storage import MemoryContentStore
    return MemoryContentStore()


@pytest.fixture
def ledger():
    from neuralhash.ledger import MemoryCredentialLedger
    return MemoryCredentialLedger()


@pytest.fixture
def hub():
    from neuralhash.interactions import MemoryInteractionHub
    return MemoryInteractionHub()


@pytest.fixture
def alice_payload():
    return {"name": "Alice", "type": "Passport", "year": "2025"}


# ─── Stub JSON-RPC chain for the Web3 clients ─────────────────────

class _ContractCall:
    def __init__(self, chain, address, name, args):
        self.chain, self.address, self.name, self.args = chain, address, name, args

    def call(self):
        self.chain.calls.append((self.name, self.args))
        result = self.chain.results[self.name]
        if isinstance(result, Exception):
            raise result
        return result

    def build_transaction(self, params):
        if self.chain.fail_with is not None:
            raise self.chain.fail_with
        self.chain.built.append((self.name, self.args))
        return {"to": self.address, "data": "0x", "value": 0, "gas": 100_000,
                "gasPrice": 1_000_000_000, "chainId": 11155111, **params}


class _Functions:
    def __init__(self, chain, address):
        self._chain, self._address = chain, address

    def __getattr__(self, name):
        return lambda *args: _ContractCall(self._chain, self._address, name, args)


class _Contract:
    def __init__(self, chain, address):
        self.address = address
        self.functions = _Functions(chain, address)


class _Eth:
    block_number = 12

    def __init__(self, chain):
        self._chain = chain

    def contract(self, address, abi):
        return _Contract(self._chain, address)

    def get_transaction_count(self, address):
        return len(self._chain.sent)

    def send_raw_transaction(self, raw):
        from web3 import Web3
        self._chain.sent.append(bytes(raw))
        return Web3.keccak(bytes(raw))

    def wait_for_transaction_receipt(self, tx_hash):
        return {
            "status": self._chain.receipt_status,
            "blockNumber": 10,
            "blockHash": b"\x11" * 32,
            "gasUsed": 21_000,
            "effectiveGasPrice": 2_000_000_000,
        }

    def get_block(self, block_hash):
        return {"timestamp": 1_700_000_000}


class StubChain:
    """Stands in for a Web3 instance: canned view results, recorded transactions."""

    def __init__(self):
        self.eth = _Eth(self)
        self.results = {}
        self.calls = []
        self.built = []
        self.sent = []
        self.receipt_status = 1
        self.fail_with = None


@pytest.fixture
def chain():
    return StubChain()
