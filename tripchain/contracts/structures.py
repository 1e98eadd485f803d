"""Data structures shared by the contract interpreter and manager."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..balance import Balance

ContractState = dict[str, Any]


class ContractError(Exception):
    """Raised when a contract cannot be found, created or changed."""


class ExecutionError(ContractError):
    """Raised when contract code fails while running."""


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, (ContractOperation, ContractEvent, ContractExecution)):
        return value.to_dict()
    if isinstance(value, Balance):
        return value.to_json()
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


@dataclass
class ContractOperation:
    """One instruction of contract code."""

    op_code: str
    args: list[Any] = field(default_factory=list)
    requires_auth: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "opCode": self.op_code,
            "args": _to_jsonable(self.args),
            "requiresAuth": self.requires_auth,
        }


@dataclass
class Contract:
    """A deployed contract: its code, state and balance."""

    address: str
    creator: str
    code: list[ContractOperation] = field(default_factory=list)
    state: ContractState = field(default_factory=dict)
    balance: Balance = field(default_factory=Balance)
    created_at: str = ""
    last_executed: str = ""
    code_hash: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)


@dataclass
class ContractInvocation:
    """A request to run a contract method."""

    contract_address: str = ""
    method: str = ""
    args: list[Any] = field(default_factory=list)
    caller: str = ""
    value: str = ""
    gas_limit: int = 0
    gas_price: str = ""
    nonce: int = 0
    timestamp: str = ""
    signature: str = ""


@dataclass
class ContractEvent:
    """An event emitted by a contract."""

    contract_address: str
    event_name: str
    data: dict[str, Any] = field(default_factory=dict)
    block_number: int = 0
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "contractAddress": self.contract_address,
            "eventName": self.event_name,
            "data": _to_jsonable(self.data),
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
        }


@dataclass
class ContractExecution:
    """The outcome of running a contract method."""

    success: bool = False
    gas_used: int = 0
    return_value: Any = None
    error_message: str = ""
    state_updates: dict[str, Any] = field(default_factory=dict)
    events: list[ContractEvent] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "gasUsed": self.gas_used,
            "returnValue": _to_jsonable(self.return_value),
            "errorMessage": self.error_message,
            "stateUpdates": _to_jsonable(self.state_updates),
            "events": [event.to_dict() for event in self.events],
            "logs": list(self.logs),
        }


EventListener = Callable[[ContractEvent], None]


@dataclass
class ContractMethod:
    """A named method made of contract operations."""

    name: str
    description: str = ""
    args: list[str] = field(default_factory=list)
    operations: list[ContractOperation] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    is_public: bool = False


@dataclass
class ContractTemplate:
    """A reusable set of methods and initial state for new contracts."""

    name: str
    description: str = ""
    methods: dict[str, ContractMethod] = field(default_factory=dict)
    init_state: ContractState = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)