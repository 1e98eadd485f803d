"""Runs contract operations against a contract's state and the currency ledger."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any

from ..balance import Balance, CurrencyError
from ..currency import CurrencyManager
from ..logger import new_seeded_rand
from .operations import (
    GAS_COST_BASE,
    GAS_COST_CALL,
    GAS_COST_COMPUTE,
    GAS_COST_EMIT_EVENT,
    GAS_COST_LOAD,
    GAS_COST_NATIVE_CALL,
    GAS_COST_STORE,
    GAS_COST_TRANSFER,
    OpCode,
    arithmetic,
    compare,
    compute_code_hash,
    find_method_operations,
    numeric_value,
    truthiness,
)
from .structures import (
    Contract,
    ContractError,
    ContractEvent,
    ContractExecution,
    ContractInvocation,
    ContractOperation,
    ContractState,
    ExecutionError,
)

_Handler = Callable[
    [list, Contract, ContractState, ContractInvocation, ContractExecution],
    "tuple[Any, int]",
]


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _code_of(op: ContractOperation) -> str:
    code = op.op_code
    if isinstance(code, Enum):
        return str(code.value)
    return str(code)


def _operation_list(value: Any, message: str) -> list[ContractOperation]:
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(item, ContractOperation) for item in value
    ):
        raise ExecutionError(message)
    return list(value)


class Interpreter:
    """Executes contract operations and accounts for the gas they use.

    Failures raise :class:`ExecutionError`; when raised from
    :meth:`execute_operations` the exception carries a ``gas_used``
    attribute with the gas consumed before the failing operation.
    """

    def __init__(
        self,
        currency: CurrencyManager,
        notify: Callable[[ContractEvent], None] | None = None,
    ) -> None:
        self.currency = currency
        self._notify = notify
        self._handlers: dict[str, Callable[..., tuple[Any, int]]] = {
            OpCode.STORE.value: self._store,
            OpCode.LOAD.value: self._load,
            OpCode.TRANSFER.value: self._transfer,
            OpCode.EMIT_EVENT.value: self._emit_event,
            OpCode.ADD.value: partial(self._arithmetic, OpCode.ADD),
            OpCode.SUB.value: partial(self._arithmetic, OpCode.SUB),
            OpCode.MUL.value: partial(self._arithmetic, OpCode.MUL),
            OpCode.DIV.value: partial(self._arithmetic, OpCode.DIV),
            OpCode.COMPARE.value: self._compare,
            OpCode.REQUIRE.value: self._require,
            OpCode.REVERT.value: self._revert,
            OpCode.IF.value: self._if,
            OpCode.CALL.value: self._call,
            OpCode.NATIVE_CALL.value: self._native_call,
            OpCode.RETURN.value: self._return,
        }

    def execute_operations(
        self,
        contract: Contract,
        operations: Sequence[ContractOperation],
        invocation: ContractInvocation,
        execution: ContractExecution,
    ) -> tuple[Any, int]:
        """Run ``operations`` in order and commit the resulting state.

        Returns the value of a RETURN operation (or None) and the gas used.
        """
        with contract.lock:
            local_state: ContractState = dict(contract.state)

        result: Any = None
        gas_used = 0
        for op in operations:
            try:
                if gas_used >= invocation.gas_limit:
                    raise ExecutionError("out of gas")
                op_result, op_gas = self.execute_operation(
                    op, contract, local_state, invocation, execution
                )
            except ExecutionError as exc:
                exc.gas_used = gas_used
                raise
            gas_used += op_gas
            if _code_of(op) == OpCode.RETURN.value:
                result = op_result
                break

        with contract.lock:
            contract.state.update(local_state)
            execution.state_updates.update(local_state)
        return result, gas_used

    def execute_operation(
        self,
        op: ContractOperation,
        contract: Contract,
        state: ContractState,
        invocation: ContractInvocation,
        execution: ContractExecution,
    ) -> tuple[Any, int]:
        """Run a single operation; return its result and the gas it used."""
        code = _code_of(op)
        execution.logs.append(f"Executing {code} operation")

        if op.requires_auth and invocation.caller != contract.creator:
            raise ExecutionError("operation requires authorization")

        handler = self._handlers.get(code)
        if handler is None:
            raise ExecutionError(f"unknown operation: {code}")
        result, extra_gas = handler(list(op.args), contract, state, invocation, execution)
        return result, GAS_COST_BASE + extra_gas

    def _store(self, args, contract, state, invocation, execution):
        if len(args) < 2:
            raise ExecutionError("STORE requires key and value arguments")
        key = args[0]
        if not isinstance(key, str):
            raise ExecutionError("STORE key must be a string")
        state[key] = args[1]
        return args[1], GAS_COST_STORE

    def _load(self, args, contract, state, invocation, execution):
        if len(args) < 1:
            raise ExecutionError("LOAD requires key argument")
        key = args[0]
        if not isinstance(key, str):
            raise ExecutionError("LOAD key must be a string")
        if key not in state:
            raise ExecutionError(f"key not found: {key}")
        return state[key], GAS_COST_LOAD

    def _transfer(self, args, contract, state, invocation, execution):
        if len(args) < 2:
            raise ExecutionError("TRANSFER requires to and amount arguments")
        recipient, amount_text = args[0], args[1]
        if not isinstance(recipient, str):
            raise ExecutionError("TRANSFER to address must be a string")
        if not isinstance(amount_text, str):
            raise ExecutionError("TRANSFER amount must be a string")
        try:
            amount = Balance.from_string(amount_text)
        except CurrencyError as exc:
            raise ExecutionError(f"invalid amount: {exc}") from exc

        if contract.balance < amount:
            raise ExecutionError("insufficient contract balance")
        try:
            self.currency.transfer_funds(contract.address, recipient, amount)
        except CurrencyError as exc:
            raise ExecutionError(f"transfer failed: {exc}") from exc

        with contract.lock:
            contract.balance = contract.balance - amount
        return True, GAS_COST_TRANSFER

    def _emit_event(self, args, contract, state, invocation, execution):
        if len(args) < 2:
            raise ExecutionError("EMIT_EVENT requires name and data arguments")
        name = args[0]
        if not isinstance(name, str):
            raise ExecutionError("event name must be a string")
        data = args[1] if isinstance(args[1], dict) else {"value": args[1]}

        event = ContractEvent(
            contract_address=contract.address,
            event_name=name,
            data=data,
            block_number=0,
            timestamp=_now(),
        )
        execution.events.append(event)
        if self._notify is not None:
            self._notify(event)
        return event, GAS_COST_EMIT_EVENT

    def _arithmetic(self, opcode, args, contract, state, invocation, execution):
        if len(args) < 2:
            raise ExecutionError(f"{opcode.value} requires two arguments")
        return arithmetic(opcode, args[0], args[1]), GAS_COST_COMPUTE

    def _compare(self, args, contract, state, invocation, execution):
        if len(args) < 3:
            raise ExecutionError("COMPARE requires value1, value2, and operator arguments")
        return compare(args[0], args[1], args[2]), GAS_COST_COMPUTE

    def _require(self, args, contract, state, invocation, execution):
        if len(args) < 1:
            raise ExecutionError("REQUIRE requires at least one argument")
        if not truthiness(args[0], "REQUIRE"):
            message = "requirement failed"
            if len(args) > 1 and isinstance(args[1], str):
                message = args[1]
            raise ExecutionError(message)
        return True, 0

    def _revert(self, args, contract, state, invocation, execution):
        message = "execution reverted"
        if args and isinstance(args[0], str):
            message = args[0]
        raise ExecutionError(message)

    def _if(self, args, contract, state, invocation, execution):
        if len(args) < 2:
            raise ExecutionError("IF requires condition and operations arguments")
        if truthiness(args[0], "IF"):
            branch = _operation_list(args[1], "IF operations must be an array of operations")
        elif len(args) > 2:
            branch = _operation_list(args[2], "ELSE operations must be an array of operations")
        else:
            return None, 0
        return self.execute_operations(contract, branch, invocation, execution)

    def _call(self, args, contract, state, invocation, execution):
        if len(args) < 1:
            raise ExecutionError("CALL requires method name argument")
        name = args[0]
        if not isinstance(name, str):
            raise ExecutionError("method name must be a string")
        body = find_method_operations(contract.code, name)

        remaining = invocation.gas_limit - GAS_COST_BASE
        if remaining <= 0:
            raise ExecutionError("out of gas")

        nested = ContractInvocation(
            contract_address=contract.address,
            method=name,
            args=list(args[1:]),
            caller=invocation.caller,
            gas_limit=remaining,
            gas_price=invocation.gas_price,
            timestamp=_now(),
        )
        try:
            result, nested_gas = self.execute_operations(contract, body, nested, execution)
        except ExecutionError as exc:
            raise ExecutionError(f"method call to {name} failed: {exc}") from exc
        return result, nested_gas + GAS_COST_CALL

    def _native_call(self, args, contract, state, invocation, execution):
        if len(args) < 1:
            raise ExecutionError("NATIVE_CALL requires function name argument")
        name = args[0]
        if not isinstance(name, str):
            raise ExecutionError("function name must be a string")

        if name == "timestamp":
            result: Any = _now()
        elif name == "random":
            result = self._random(args, contract)
        elif name == "sha256":
            result = self._sha256(args)
        elif name == "caller":
            result = invocation.caller
        elif name == "contract_address":
            result = contract.address
        elif name == "balance":
            address = contract.address
            if len(args) > 1 and isinstance(args[1], str):
                address = args[1]
            result = str(self.currency.get_balance(address))
        else:
            raise ExecutionError(f"unknown native function: {name}")
        return result, GAS_COST_NATIVE_CALL

    @staticmethod
    def _random(args: list, contract: Contract) -> float:
        if len(args) < 2:
            raise ExecutionError("random requires max argument")
        maximum = numeric_value(args[1])
        if maximum is None:
            raise ExecutionError("max value must be numeric")
        if maximum <= 0:
            raise ExecutionError("max value must be positive")
        salt = ord(contract.address[0]) if contract.address else 0
        rng = new_seeded_rand(time.time_ns() ^ salt)
        return rng.random() * maximum

    @staticmethod
    def _sha256(args: list) -> str:
        if len(args) < 2:
            raise ExecutionError("sha256 requires data argument")
        data = args[1]
        if isinstance(data, str):
            return hashlib.sha256(data.encode("utf-8")).hexdigest()
        try:
            return compute_code_hash(data)
        except ContractError as exc:
            raise ExecutionError(f"failed to serialize data: {exc}") from exc

    def _return(self, args, contract, state, invocation, execution):
        if not args:
            return None, 0
        return args[0], 0