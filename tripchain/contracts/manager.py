"""Deployment, execution and bookkeeping of contracts."""

from __future__ import annotations

import threading
from collections.abc import Iterable, MutableMapping
from datetime import datetime, timezone
from typing import Any

from ..balance import (
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE,
    GENESIS_ADDRESS,
    TRIPCOIN,
    Balance,
    CurrencyError,
)
from ..currency import CurrencyManager
from ..logger import log_error, log_info
from .interpreter import Interpreter
from .operations import (
    OP_RESULT,
    OpCode,
    compute_code_hash,
    find_method_operations,
    generate_contract_address,
    op_args,
    op_balance_of,
    op_block_number,
    op_caller,
    op_timestamp,
)
from .structures import (
    Contract,
    ContractError,
    ContractEvent,
    ContractExecution,
    ContractInvocation,
    ContractOperation,
    ContractState,
    ContractTemplate,
    EventListener,
    ExecutionError,
)

FEE_COLLECTOR = "SYSTEM_FEES"
READ_ONLY_GAS_LIMIT = 1_000_000


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _as_balance(value: Balance | int | None) -> Balance | None:
    if value is None or isinstance(value, Balance):
        return value
    return Balance(value)


def _hash_code(code: Iterable[ContractOperation]) -> str:
    try:
        return compute_code_hash(list(code))
    except ContractError as exc:
        raise ContractError(f"failed to marshal contract code: {exc}") from exc


class ContractManager:
    """Keeps deployed contracts, templates and event listeners."""

    def __init__(self, currency: CurrencyManager) -> None:
        self.currency = currency
        self._contracts: dict[str, Contract] = {}
        self._global_state: dict[str, ContractState] = {}
        self._listeners: dict[str, list[EventListener]] = {}
        self._events: list[ContractEvent] = []
        self._lock = threading.RLock()
        self.interpreter = Interpreter(currency, notify=self._notify)

    def get_contract(self, address: str) -> Contract:
        """Return the contract at ``address``."""
        with self._lock:
            contract = self._contracts.get(address)
        if contract is None:
            raise ContractError(f"contract not found: {address}")
        return contract

    def create_contract(
        self,
        creator: str,
        code: Iterable[ContractOperation],
        initial_state: ContractState | None = None,
        value: Balance | int | None = None,
    ) -> Contract:
        """Deploy new contract code, optionally funding it from the creator."""
        code = list(code)
        value = _as_balance(value)
        funded = value is not None and value.amount > 0
        with self._lock:
            creator_account = self.currency.get_account(creator)
            if funded and creator_account.balance < value:
                raise ContractError("insufficient balance for contract creation")

            timestamp = _now()
            address = generate_contract_address(creator, creator_account.nonce, timestamp)
            contract = Contract(
                address=address,
                creator=creator,
                code=code,
                state=dict(initial_state or {}),
                balance=Balance(0),
                created_at=timestamp,
                last_executed=timestamp,
                code_hash=_hash_code(code),
            )

            if funded:
                try:
                    self.currency.transfer_funds(creator, address, value)
                except CurrencyError as exc:
                    raise ContractError(f"failed to transfer funds to contract: {exc}") from exc
                contract.balance = value

            self._contracts[address] = contract
            creator_account.nonce += 1
        log_info("Contract created: %s by %s", address, creator)
        return contract

    def execute_contract(self, invocation: ContractInvocation) -> ContractExecution:
        """Run a contract method, charging the caller for the gas used.

        Failures inside the contract code are reported in the returned
        execution; invalid invocations raise :class:`ContractError`.
        """
        if not invocation.contract_address:
            raise ContractError("contract address is required")
        if not invocation.method:
            raise ContractError("method name is required")

        contract = self.get_contract(invocation.contract_address)
        if invocation.gas_limit == 0:
            invocation.gas_limit = DEFAULT_GAS_LIMIT

        execution = ContractExecution()

        if invocation.value:
            try:
                value = Balance.from_string(invocation.value)
            except CurrencyError as exc:
                raise ContractError(f"invalid value: {exc}") from exc
            if value.amount > 0:
                try:
                    self.currency.transfer_funds(
                        invocation.caller, invocation.contract_address, value
                    )
                except CurrencyError as exc:
                    raise ContractError(f"failed to transfer value to contract: {exc}") from exc
                with contract.lock:
                    contract.balance = contract.balance + value

        operations = find_method_operations(contract.code, invocation.method)

        try:
            result, gas_used = self.interpreter.execute_operations(
                contract, operations, invocation, execution
            )
        except ExecutionError as exc:
            gas_used = getattr(exc, "gas_used", 0)
            execution.success = False
            execution.error_message = str(exc)
        else:
            execution.success = True
            execution.return_value = result
        execution.gas_used = gas_used

        with contract.lock:
            contract.last_executed = _now()

        try:
            gas_price = Balance.from_string(invocation.gas_price)
        except CurrencyError:
            gas_price = Balance(DEFAULT_GAS_PRICE)
        fee = self.currency.calculate_transaction_fee(gas_used, gas_price)
        log_info(
            "Contract execution gas used: %d, fee: %s", gas_used, fee.tripcoin_string()
        )
        try:
            self.currency.transfer_funds(invocation.caller, FEE_COLLECTOR, fee)
        except CurrencyError as exc:
            log_error("Failed to collect gas fee: %s", exc)

        return execution

    def add_event_listener(self, event_name: str, listener: EventListener) -> None:
        """Call ``listener`` for every event named ``event_name`` ("*" for all)."""
        with self._lock:
            self._listeners.setdefault(event_name, []).append(listener)
        log_info("Event listener added for %s", event_name)

    def _notify(self, event: ContractEvent) -> None:
        with self._lock:
            self._events.append(event)
            listeners = list(self._listeners.get("*", ()))
            listeners += self._listeners.get(event.event_name, ())
        for listener in listeners:
            threading.Thread(target=listener, args=(event,), daemon=True).start()

    def update_contract_code(
        self, address: str, new_code: Iterable[ContractOperation], caller: str
    ) -> None:
        """Replace a contract's code; only its creator may do so."""
        new_code = list(new_code)
        with self._lock:
            contract = self._contracts.get(address)
            if contract is None:
                raise ContractError(f"contract not found: {address}")
            if contract.creator != caller:
                raise ContractError("only contract creator can update code")
            code_hash = _hash_code(new_code)
            with contract.lock:
                contract.code = new_code
                contract.code_hash = code_hash
                contract.last_executed = _now()
        log_info("Contract code updated: %s by %s", address, caller)

    def register_template(self, template: ContractTemplate) -> None:
        """Make a template available for deployment by name."""
        with self._lock:
            self._global_state.setdefault("templates", {})[template.name] = template
        log_info("Contract template registered: %s", template.name)

    def deploy_from_template(
        self,
        template_name: str,
        creator: str,
        initial_state: ContractState | None = None,
        value: Balance | int | None = None,
    ) -> Contract:
        """Deploy a contract built from a registered template."""
        with self._lock:
            templates = self._global_state.get("templates")
            if templates is None:
                raise ContractError("no templates registered")
            template = templates.get(template_name)
            if template is None:
                raise ContractError(f"template not found: {template_name}")
            if not isinstance(template, ContractTemplate):
                raise ContractError("invalid template format")

        state = {**template.init_state, **(initial_state or {})}
        code: list[ContractOperation] = []
        for name, method in template.methods.items():
            code.append(
                ContractOperation(
                    OpCode.METHOD.value, [name, method.description, method.is_public]
                )
            )
            code.extend(method.operations)
        return self.create_contract(creator, code, state, value)

    def get_contract_state(self, address: str) -> ContractState:
        """Return a copy of the contract's state."""
        contract = self.get_contract(address)
        with contract.lock:
            return dict(contract.state)

    def get_contract_events(
        self, address: str, event_name: str = "", limit: int = 0
    ) -> list[ContractEvent]:
        """Return events emitted by a contract, oldest first.

        An empty name or "*" matches every event; a limit of zero or less
        means no limit.
        """
        with self._lock:
            events = [
                event
                for event in self._events
                if event.contract_address == address
                and (event_name in ("", "*") or event.event_name == event_name)
            ]
        if limit > 0:
            events = events[:limit]
        return events

    def execute_read_only(
        self, address: str, method: str, args: list[Any] | None, caller: str
    ) -> Any:
        """Run a method and return its result, leaving the contract state as it was."""
        contract = self.get_contract(address)
        invocation = ContractInvocation(
            contract_address=address,
            method=method,
            args=list(args or []),
            caller=caller,
            gas_limit=READ_ONLY_GAS_LIMIT,
            gas_price="0",
            timestamp=_now(),
        )
        execution = ContractExecution()
        operations = find_method_operations(contract.code, method)

        with contract.lock:
            snapshot = dict(contract.state)
            try:
                result, _ = self.interpreter.execute_operations(
                    contract, operations, invocation, execution
                )
            finally:
                contract.state.clear()
                contract.state.update(snapshot)
        return result


def _governance_code() -> list[ContractOperation]:
    return [
        ContractOperation(OpCode.METHOD.value, ["propose", "Crear nueva propuesta", True]),
        ContractOperation(
            OpCode.REQUIRE.value,
            ["caller == creator", OpCode.COMPARE.value, op_caller(), "$creator"],
        ),
        ContractOperation(OpCode.STORE.value, ["proposals.$id", op_args(0)]),
        ContractOperation(OpCode.EMIT_EVENT.value, ["ProposalCreated", {"id": op_args(0)}]),
    ]


def _validator_code() -> list[ContractOperation]:
    return [
        ContractOperation(OpCode.METHOD.value, ["register", "Registrar nuevo validador", True]),
        ContractOperation(
            OpCode.REQUIRE.value,
            [
                "balance >= 100 TCC",
                OpCode.COMPARE.value,
                op_balance_of(op_caller()),
                "100000000000000000000",
            ],
        ),
        ContractOperation(
            OpCode.STORE.value,
            [
                "validators.$caller",
                {"stake": op_args(0), "status": "active", "registered": op_timestamp()},
            ],
        ),
        ContractOperation(
            OpCode.EMIT_EVENT.value, ["ValidatorRegistered", {"address": op_caller()}]
        ),
    ]


def _rewards_code() -> list[ContractOperation]:
    return [
        ContractOperation(OpCode.METHOD.value, ["distribute", "Distribuir recompensas", True]),
        ContractOperation(OpCode.NATIVE_CALL.value, ["get_block_producer"]),
        ContractOperation(OpCode.TRANSFER.value, [OP_RESULT, "2000000000000000000"]),
        ContractOperation(
            OpCode.EMIT_EVENT.value,
            [
                "RewardsDistributed",
                {
                    "block": op_block_number(),
                    "validator": OP_RESULT,
                    "amount": "2000000000000000000",
                },
            ],
        ),
    ]


def deploy_system_contracts(
    manager: ContractManager, registry: MutableMapping[str, str]
) -> MutableMapping[str, str]:
    """Deploy governance, validator-registry and rewards contracts.

    Each contract's address is recorded in ``registry`` under its system name,
    and the registry is returned.
    """
    deployments = [
        (
            "governance",
            _governance_code(),
            {
                "voting_delay": "172800",
                "voting_period": "259200",
                "proposal_count": "0",
                "quorum_percentage": "4",
            },
            Balance(0),
        ),
        (
            "validators",
            _validator_code(),
            {"min_stake": "100000000000000000000"},
            Balance(0),
        ),
        (
            "rewards",
            _rewards_code(),
            {"reward_per_block": "2000000000000000000"},
            Balance(100 * TRIPCOIN),
        ),
    ]
    for name, code, state, value in deployments:
        try:
            contract = manager.create_contract(GENESIS_ADDRESS, code, state, value)
        except ContractError as exc:
            log_error("Error deploying system contract %s: %s", name, exc)
            raise
        registry[name] = contract.address
        log_info("System contract %s deployed: %s", name, contract.address)
    log_info("System contracts deployed")
    return registry