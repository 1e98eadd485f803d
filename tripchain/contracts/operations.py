"""Contract op codes, gas costs and the pure helpers the interpreter relies on."""

from __future__ import annotations

import hashlib
import json
import math
import re
from collections.abc import Sequence
from enum import Enum
from typing import Any

from ..balance import Balance
from .structures import ContractError, ContractEvent, ContractOperation, ExecutionError


class OpCode(str, Enum):
    """Operation codes understood by the contract interpreter."""

    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    TRANSFER = "TRANSFER"
    STORE = "STORE"
    LOAD = "LOAD"
    IF = "IF"
    COMPARE = "COMPARE"
    RETURN = "RETURN"
    CALL = "CALL"
    EMIT_EVENT = "EMIT_EVENT"
    REQUIRE = "REQUIRE"
    REVERT = "REVERT"
    NATIVE_CALL = "NATIVE_CALL"
    METHOD = "METHOD"


GAS_COST_BASE = 10
GAS_COST_STORE = 100
GAS_COST_LOAD = 20
GAS_COST_TRANSFER = 500
GAS_COST_CALL = 200
GAS_COST_EMIT_EVENT = 50
GAS_COST_NATIVE_CALL = 1000
GAS_COST_COMPUTE = 5
GAS_COST_CONTRACT_CALL = 1000

OP_RESULT = "result"

_ARITHMETIC = {OpCode.ADD, OpCode.SUB, OpCode.MUL, OpCode.DIV}
_BIG_INT = re.compile(r"[+-]?[0-9]+")


def op_caller() -> ContractOperation:
    """Operation yielding the caller's address."""
    return ContractOperation(OpCode.NATIVE_CALL.value, ["caller"])


def op_timestamp() -> ContractOperation:
    """Operation yielding the current timestamp."""
    return ContractOperation(OpCode.NATIVE_CALL.value, ["timestamp"])


def op_block_number() -> ContractOperation:
    """Operation yielding the current block number."""
    return ContractOperation(OpCode.NATIVE_CALL.value, ["block_number"])


def op_args(index: int) -> ContractOperation:
    """Operation loading the invocation argument at ``index``."""
    return ContractOperation(OpCode.LOAD.value, [f"args.{index}"])


def op_balance_of(address: Any) -> ContractOperation:
    """Operation yielding the balance of ``address``."""
    return ContractOperation(OpCode.NATIVE_CALL.value, ["balance", address])


def generate_contract_address(creator: str, nonce: int, timestamp: str) -> str:
    """Derive a contract address from its creator, nonce and creation time."""
    digest = hashlib.sha256(f"{creator}:{nonce}:{timestamp}".encode()).hexdigest()
    return "contract-" + digest[:40]


def _encode_string(value: str) -> str:
    text = json.dumps(value, ensure_ascii=False)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def _encode_float(value: float) -> str:
    if not math.isfinite(value):
        raise ContractError(f"unsupported float value: {value}")
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _encode_object(pairs: Sequence[tuple[str, Any]]) -> str:
    return "{" + ",".join(f"{_encode_string(k)}:{_encode(v)}" for k, v in pairs) + "}"


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _encode(value.value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _encode_float(value)
    if isinstance(value, str):
        return _encode_string(value)
    if isinstance(value, Balance):
        return _encode_string(value.to_json())
    if isinstance(value, ContractOperation):
        return _encode_object(
            [("opCode", value.op_code), ("args", value.args), ("requiresAuth", value.requires_auth)]
        )
    if isinstance(value, ContractEvent):
        return _encode_object(
            [
                ("contractAddress", value.contract_address),
                ("eventName", value.event_name),
                ("data", value.data),
                ("blockNumber", value.block_number),
                ("timestamp", value.timestamp),
            ]
        )
    if isinstance(value, dict):
        items = sorted((str(k), v) for k, v in value.items())
        return _encode_object(items)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(v) for v in value) + "]"
    raise ContractError(f"cannot serialise value of type {type(value).__name__}")


def compute_code_hash(code: Any) -> str:
    """SHA-256 hex digest of the JSON encoding of contract code (or any JSON-able value).

    Objects are written with sorted keys, operations with their fields in
    declaration order, and no whitespace.
    """
    return hashlib.sha256(_encode(code).encode("utf-8")).hexdigest()


def numeric_value(value: Any) -> float | None:
    """Return ``value`` as a float, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if not value or value != value.strip() or "_" in value:
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _parse_big(text: str) -> int:
    if not _BIG_INT.fullmatch(text):
        raise ExecutionError(f"invalid number format: {text}")
    return int(text)


def _truncated_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _euclidean_div(a: int, b: int) -> int:
    return a // b if b > 0 else -(a // -b)


def arithmetic(opcode: OpCode | str, a: Any, b: Any) -> Any:
    """Apply ADD, SUB, MUL or DIV to two values of the same numeric kind.

    Floats and integers are combined directly; decimal strings are treated as
    arbitrary-precision integers and the result is returned as a string.
    """
    op = OpCode(opcode)
    if op not in _ARITHMETIC:
        raise ExecutionError(f"unknown operation: {op.value}")
    name = op.value

    if isinstance(a, float) and isinstance(b, float):
        if op is OpCode.DIV:
            if b == 0:
                raise ExecutionError("division by zero")
            return a / b
        return _apply(op, a, b)

    if (
        isinstance(a, int)
        and isinstance(b, int)
        and not isinstance(a, bool)
        and not isinstance(b, bool)
    ):
        if op is OpCode.DIV:
            if b == 0:
                raise ExecutionError("division by zero")
            return _truncated_div(a, b)
        return _apply(op, a, b)

    if isinstance(a, str) and isinstance(b, str):
        left = _parse_big(a)
        right = _parse_big(b)
        if op is OpCode.DIV:
            if right == 0:
                raise ExecutionError("division by zero")
            return str(_euclidean_div(left, right))
        return str(_apply(op, left, right))

    raise ExecutionError(f"{name} requires numeric arguments")


def _apply(op: OpCode, a: Any, b: Any) -> Any:
    if op is OpCode.ADD:
        return a + b
    if op is OpCode.SUB:
        return a - b
    return a * b


def compare(a: Any, b: Any, operator: str) -> bool:
    """Compare two values with ``operator``.

    ``==`` and ``equals`` hold only for values of the same type that are
    equal; the other operators compare the values numerically.
    """
    if not isinstance(operator, str):
        raise ExecutionError("COMPARE operator must be a string")
    if operator in ("==", "equals"):
        return type(a) is type(b) and a == b

    left = numeric_value(a)
    right = numeric_value(b)
    if left is None or right is None:
        raise ExecutionError(f"COMPARE requires numeric values for operator {operator}")

    if operator == "<":
        return left < right
    if operator == "<=":
        return left <= right
    if operator == ">":
        return left > right
    if operator == ">=":
        return left >= right
    if operator == "!=":
        return left != right
    raise ExecutionError(f"unknown comparison operator: {operator}")


def truthiness(value: Any, context: str) -> bool:
    """Evaluate a REQUIRE or IF condition.

    Booleans are taken as they are, strings are true only when they read
    ``"true"``, and numbers are true when non-zero.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value == "true"
    number = numeric_value(value)
    if number is None:
        raise ExecutionError(f"{context} condition must evaluate to a boolean")
    return number != 0


def find_method_operations(
    code: Sequence[ContractOperation], name: str
) -> list[ContractOperation]:
    """Return the operations of method ``name``, up to the next METHOD."""
    for position, op in enumerate(code):
        if op.op_code == OpCode.METHOD.value and op.args and op.args[0] == name:
            body: list[ContractOperation] = []
            for following in code[position + 1 :]:
                if following.op_code == OpCode.METHOD.value:
                    break
                body.append(following)
            return body
    raise ExecutionError(f"method not found: {name}")