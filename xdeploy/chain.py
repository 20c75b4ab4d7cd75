from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Optional, Sequence, Tuple

from eth_typing import ChecksumAddress


class LogEntry(NamedTuple):
    """A decoded log emitted by a transaction."""

    event_name: str
    args: Tuple[Any, ...]


class PendingTransaction(NamedTuple):
    """Handle for a submitted transaction that may not be confirmed yet."""

    txn_hash: str
    payload: Any = None


class Receipt(NamedTuple):
    """Confirmed outcome of a transaction, in decoded form."""

    txn_hash: str
    failed: bool = False
    logs: Tuple[LogEntry, ...] = ()
    contract_address: Optional[ChecksumAddress] = None
    implementation: Optional[ChecksumAddress] = None
    block_number: Optional[int] = None


class Chain(ABC):
    """
    The chain collaborator: submits contract creations and method calls
    on behalf of a single signer and reports their decoded receipts.
    """

    @property
    @abstractmethod
    def deployer(self) -> ChecksumAddress:
        """Address of the signer submitting every transaction."""
        raise NotImplementedError

    @abstractmethod
    def deploy(self, contract: str, args: Sequence[Any]) -> PendingTransaction:
        raise NotImplementedError

    @abstractmethod
    def deploy_proxy(
        self, contract: str, initializer: Optional[str], args: Sequence[Any]
    ) -> PendingTransaction:
        """Deploys ``contract`` behind an upgradeable proxy, calling ``initializer``."""
        raise NotImplementedError

    @abstractmethod
    def transact(
        self, contract: str, address: ChecksumAddress, method: str, args: Sequence[Any]
    ) -> PendingTransaction:
        raise NotImplementedError

    @abstractmethod
    def upgrade_proxy(
        self, contract: str, proxy_address: ChecksumAddress, data: bytes = b""
    ) -> PendingTransaction:
        """Points an existing proxy at a freshly deployed ``contract`` implementation."""
        raise NotImplementedError

    @abstractmethod
    def wait(self, pending: PendingTransaction, confirmations: int) -> Receipt:
        """Blocks until the transaction has the requested number of confirmations."""
        raise NotImplementedError
