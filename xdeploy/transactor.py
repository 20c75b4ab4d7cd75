import time
import typing
from typing import Any, NamedTuple, Optional, Sequence

from ape import chain, networks, project
from ape.api import AccountAPI, ReceiptAPI
from ape.contracts.base import ContractContainer, ContractInstance
from ape.logging import logger
from ape.utils import EMPTY_BYTES32
from ape_accounts import KeyfileAccount
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from xdeploy.chain import Chain, LogEntry, PendingTransaction, Receipt
from xdeploy.constants import EIP1967_ADMIN_SLOT, OZ_DEPENDENCY_NAME, OZ_DEPENDENCY_VERSION
from xdeploy.networks import is_local_network


class _Submission(NamedTuple):
    receipt: ReceiptAPI
    contract_address: Optional[ChecksumAddress] = None
    implementation: Optional[ChecksumAddress] = None


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    """Looks ``contract`` up in the installed dependencies, e.g. OpenZeppelin."""
    for dependency_name, versions in project.dependencies.items():
        if len(versions) > 1:
            raise ValueError(
                f"'{contract}' may come from {len(versions)} versions of {dependency_name}; "
                "keep a single version in ape-config.yaml"
            )
        dependency = list(versions.values())[0]
        if hasattr(dependency, contract):
            return getattr(dependency, contract)
    raise ValueError(
        f"'{contract}' is neither compiled in this project nor provided by a dependency"
    )


def get_contract_container(contract: str) -> ContractContainer:
    """Flow steps name contracts by type; project contracts take precedence."""
    if hasattr(project, contract):
        return getattr(project, contract)
    return _get_dependency_contract_container(contract)


def _oz_container(contract: str) -> ContractContainer:
    oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    return getattr(oz_dependency, contract)


def _decode_logs(receipt: ReceiptAPI) -> typing.Tuple[LogEntry, ...]:
    entries = list()
    for log in receipt.decode_logs():
        args = tuple(log.event_arguments.values())
        entries.append(LogEntry(event_name=log.event_name, args=args))
    return tuple(entries)


class ApeChain(Chain):
    """
    The chain collaborator backed by an ape account.

    Proxies are OpenZeppelin TransparentUpgradeableProxy instances owned by
    the deployer; upgrades go through the proxy's EIP-1967 admin.
    """

    def __init__(self, account: AccountAPI, autosign: bool = False):
        self._account = account
        if autosign:
            logger.warning("Autosign is enabled. Transactions will be signed automatically.")
        if isinstance(self._account, KeyfileAccount):
            # test accounts always sign
            self._account.set_autosign(autosign)

    @property
    def deployer(self) -> ChecksumAddress:
        return self._account.address

    def _deploy_instance(self, container: ContractContainer, *args) -> ContractInstance:
        return self._account.deploy(container, *args)

    def deploy(self, contract: str, args: Sequence[Any]) -> PendingTransaction:
        instance = self._deploy_instance(get_contract_container(contract), *args)
        receipt = instance.receipt
        return PendingTransaction(
            txn_hash=receipt.txn_hash,
            payload=_Submission(receipt=receipt, contract_address=instance.address),
        )

    def deploy_proxy(
        self, contract: str, initializer: Optional[str], args: Sequence[Any]
    ) -> PendingTransaction:
        implementation = self._deploy_instance(get_contract_container(contract))
        data = b""
        if initializer:
            data = getattr(implementation, initializer).encode_input(*args)

        proxy_container = _oz_container("TransparentUpgradeableProxy")
        logger.info(
            f"Deploying {proxy_container.contract_type.name} "
            f"to proxy {contract} at {implementation.address}"
        )
        proxy = self._deploy_instance(
            proxy_container, implementation.address, self.deployer, data
        )
        receipt = proxy.receipt
        return PendingTransaction(
            txn_hash=receipt.txn_hash,
            payload=_Submission(
                receipt=receipt,
                contract_address=proxy.address,
                implementation=implementation.address,
            ),
        )

    def transact(
        self, contract: str, address: ChecksumAddress, method: str, args: Sequence[Any]
    ) -> PendingTransaction:
        instance = get_contract_container(contract).at(address)
        receipt = getattr(instance, method)(*args, sender=self._account)
        return PendingTransaction(txn_hash=receipt.txn_hash, payload=_Submission(receipt=receipt))

    def upgrade_proxy(
        self, contract: str, proxy_address: ChecksumAddress, data: bytes = b""
    ) -> PendingTransaction:
        admin_slot = chain.provider.get_storage_at(address=proxy_address, slot=EIP1967_ADMIN_SLOT)
        if admin_slot == EMPTY_BYTES32:
            raise ValueError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        admin_address = to_checksum_address(admin_slot[-20:])

        implementation = self._deploy_instance(get_contract_container(contract))
        proxy_admin = _oz_container("ProxyAdmin").at(admin_address)
        receipt = proxy_admin.upgradeAndCall(
            proxy_address, implementation.address, data, sender=self._account
        )
        return PendingTransaction(
            txn_hash=receipt.txn_hash,
            payload=_Submission(
                receipt=receipt,
                contract_address=to_checksum_address(proxy_address),
                implementation=implementation.address,
            ),
        )

    def wait(self, pending: PendingTransaction, confirmations: int) -> Receipt:
        submission: _Submission = pending.payload
        receipt = submission.receipt.await_confirmations()
        if not is_local_network():
            # blocks only advance on demand locally
            block_time = max(networks.provider.network.block_time, 1)
            while chain.blocks.height - receipt.block_number + 1 < confirmations:
                time.sleep(block_time)

        return Receipt(
            txn_hash=receipt.txn_hash,
            failed=receipt.failed,
            logs=_decode_logs(receipt),
            contract_address=submission.contract_address,
            implementation=submission.implementation,
            block_number=receipt.block_number,
        )
