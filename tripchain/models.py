"""Block, transaction and critical-process records with their JSON shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BlockDataTransaction:
    """Amount moved from a sender to a recipient."""

    amount: float = 0.0
    sender: str = ""
    recipient: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"amount": self.amount, "sender": self.sender, "recipient": self.recipient}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BlockDataTransaction:
        data = data or {}
        return cls(
            amount=float(data.get("amount") or 0.0),
            sender=data.get("sender") or "",
            recipient=data.get("recipient") or "",
        )


@dataclass
class Transaction:
    """A transaction waiting for, or included in, a block."""

    process_id: str = ""
    description: str = ""
    data: BlockDataTransaction = field(default_factory=BlockDataTransaction)
    timestamp: str = ""
    signature: str = ""
    gas_limit: int = 0

    @property
    def item_id(self) -> str:
        return self.process_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "processId": self.process_id,
            "description": self.description,
            "data": self.data.to_dict(),
            "timestamp": self.timestamp,
            "signature": self.signature,
            "gasLimit": self.gas_limit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        return cls(
            process_id=data.get("processId") or "",
            description=data.get("description") or "",
            data=BlockDataTransaction.from_dict(data.get("data")),
            timestamp=data.get("timestamp") or "",
            signature=data.get("signature") or "",
            gas_limit=int(data.get("gasLimit") or 0),
        )


@dataclass
class CriticalProcess:
    """A critical process recorded on the critical chain."""

    process_id: str = ""
    hash_data: str = ""
    original_data_structure: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    timestamp: str = ""
    signature: str = ""

    @property
    def item_id(self) -> str:
        return self.process_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "processId": self.process_id,
            "hashData": self.hash_data,
            "originalDataStructure": dict(self.original_data_structure),
            "description": self.description,
            "timestamp": self.timestamp,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CriticalProcess:
        return cls(
            process_id=data.get("processId") or "",
            hash_data=data.get("hashData") or "",
            original_data_structure=dict(data.get("originalDataStructure") or {}),
            description=data.get("description") or "",
            timestamp=data.get("timestamp") or "",
            signature=data.get("signature") or "",
        )


@dataclass
class Block:
    """A block holding either transactions or critical processes."""

    index: int = 0
    timestamp: str = ""
    block_type: str = ""
    transactions: list[Transaction] = field(default_factory=list)
    critical_processes: list[CriticalProcess] = field(default_factory=list)
    previous_hash: str = ""
    hash: str = ""
    nonce: int = 0
    signature: str = ""
    validator: str = ""
    total_fees: float = 0.0
    data: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise, leaving out empty lists and zero fees."""
        result: dict[str, Any] = {
            "index": self.index,
            "timestamp": self.timestamp,
            "type": self.block_type,
        }
        if self.transactions:
            result["transactions"] = [tx.to_dict() for tx in self.transactions]
        if self.critical_processes:
            result["criticalProcesses"] = [cp.to_dict() for cp in self.critical_processes]
        result.update(
            previousHash=self.previous_hash,
            hash=self.hash,
            nonce=self.nonce,
            signature=self.signature,
            validator=self.validator,
        )
        if self.total_fees:
            result["totalFees"] = self.total_fees
        result["Data"] = self.data
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        return cls(
            index=int(data.get("index") or 0),
            timestamp=data.get("timestamp") or "",
            block_type=data.get("type") or "",
            transactions=[Transaction.from_dict(t) for t in data.get("transactions") or []],
            critical_processes=[
                CriticalProcess.from_dict(c) for c in data.get("criticalProcesses") or []
            ],
            previous_hash=data.get("previousHash") or "",
            hash=data.get("hash") or "",
            nonce=int(data.get("nonce") or 0),
            signature=data.get("signature") or "",
            validator=data.get("validator") or "",
            total_fees=float(data.get("totalFees") or 0.0),
            data=data.get("Data") or "",
        )