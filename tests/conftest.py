from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import pytest
from eth_utils import to_checksum_address

from xdeploy.chain import Chain, LogEntry, PendingTransaction, Receipt
from xdeploy.exceptions import VerificationError
from xdeploy.pipeline import ExecutionContext
from xdeploy.verification import Verifier

# Common constants
DEPLOYER_ADDRESS = to_checksum_address("0x" + "de" * 20)
ROUTER_ADDRESS = to_checksum_address("0x" + "ab" * 20)
LINK_ADDRESS = to_checksum_address("0x" + "cd" * 20)
FACTORY_ADDRESS = to_checksum_address("0x" + "fa" * 20)
BASE_TOKEN_ADDRESS = to_checksum_address("0x" + "b0" * 20)
PROXY_ADDRESS = to_checksum_address("0x" + "9a" * 20)


# Utility functions
def make_address(n: int) -> str:
    """Deterministic, lowercase (not checksummed) address."""
    return "0x" + f"{n:040x}"


class ChainCall(NamedTuple):
    kind: str
    contract: str
    address: Optional[str] = None
    method: Optional[str] = None
    args: tuple = ()


class FakeChain(Chain):
    """Records every call and answers with scripted receipts."""

    def __init__(self, deployer: str = DEPLOYER_ADDRESS):
        self._deployer = deployer
        self.calls: List[ChainCall] = list()
        self.scripts: Dict[str, Dict[str, Any]] = dict()
        self.confirmations: List[int] = list()
        self._nonce = 0

    @property
    def deployer(self):
        return self._deployer

    def script(self, key: str, logs: Sequence[LogEntry] = (), failed=False, error=None,
               wait_error=None, contract_address=None):
        """Scripts the outcome of every submission for a contract or method name."""
        self.scripts[key] = dict(
            logs=tuple(logs),
            failed=failed,
            error=error,
            wait_error=wait_error,
            contract_address=contract_address,
        )

    def _next_address(self) -> str:
        self._nonce += 1
        return make_address(0x1000 + self._nonce)

    def _submit(self, key: str, call: ChainCall, creates: bool, proxied: bool = False):
        self.calls.append(call)
        script = self.scripts.get(key, {})
        if script.get("error"):
            raise script["error"]
        contract_address = script.get("contract_address")
        if not contract_address and creates:
            contract_address = self._next_address()
        elif not contract_address and call.kind == "upgrade":
            # upgrades report the proxy itself
            contract_address = call.address
        implementation = self._next_address() if proxied else None
        receipt = Receipt(
            txn_hash=f"0x{len(self.calls):064x}",
            failed=script.get("failed", False),
            logs=script.get("logs", ()),
            contract_address=contract_address,
            implementation=implementation,
            block_number=len(self.calls),
        )
        return PendingTransaction(txn_hash=receipt.txn_hash, payload=(receipt, script))

    def deploy(self, contract, args):
        call = ChainCall("deploy", contract, args=tuple(args))
        return self._submit(contract, call, creates=True)

    def deploy_proxy(self, contract, initializer, args):
        call = ChainCall("proxy", contract, method=initializer, args=tuple(args))
        return self._submit(contract, call, creates=True, proxied=True)

    def transact(self, contract, address, method, args):
        call = ChainCall("call", contract, address=address, method=method, args=tuple(args))
        return self._submit(method, call, creates=False)

    def upgrade_proxy(self, contract, proxy_address, data=b""):
        call = ChainCall("upgrade", contract, address=proxy_address)
        return self._submit(contract, call, creates=False, proxied=True)

    def wait(self, pending, confirmations):
        self.confirmations.append(confirmations)
        receipt, script = pending.payload
        if script.get("wait_error"):
            raise script["wait_error"]
        return receipt


class FakeVerifier(Verifier):
    def __init__(self, failures: Optional[Dict[str, Exception]] = None):
        self.failures = failures or dict()
        self.verified: List[tuple] = list()

    def verify(self, artifact):
        self.verified.append(
            (artifact.name, artifact.verification_address, artifact.constructor_args)
        )
        error = self.failures.get(artifact.name)
        if error:
            raise error


# Fixtures
@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def fake_verifier():
    return FakeVerifier()


@pytest.fixture
def context(fake_chain):
    return ExecutionContext(chain=fake_chain, verifier=None, autosign=True)


@pytest.fixture
def verifying_context(fake_chain, fake_verifier):
    return ExecutionContext(chain=fake_chain, verifier=fake_verifier, autosign=True)


@pytest.fixture
def already_verified():
    return VerificationError("already verified")
