import json

from tripchain.balance import Balance
from tripchain.contracts.structures import (
    Contract,
    ContractEvent,
    ContractExecution,
    ContractInvocation,
    ContractOperation,
)


def test_operation_to_dict_keys():
    op = ContractOperation("STORE", ["key", "value"], requires_auth=True)
    assert op.to_dict() == {
        "opCode": "STORE",
        "args": ["key", "value"],
        "requiresAuth": True,
    }


def test_operation_to_dict_nests_operations():
    inner = ContractOperation("NATIVE_CALL", ["caller"])
    op = ContractOperation("EMIT_EVENT", ["ValidatorRegistered", {"address": inner}])
    result = op.to_dict()
    assert result["args"][1]["address"] == inner.to_dict()
    assert result["args"][1]["address"]["opCode"] == "NATIVE_CALL"
    json.dumps(result)


def test_operation_to_dict_serialises_balance():
    op = ContractOperation("TRANSFER", ["to", Balance(2000000000000000000)])
    assert op.to_dict()["args"][1] == "2000000000000000000"


def test_operation_defaults_are_independent():
    a = ContractOperation("RETURN")
    b = ContractOperation("RETURN")
    a.args.append(1)
    assert b.args == []
    assert a.to_dict()["requiresAuth"] is False


def test_event_to_dict():
    event = ContractEvent("contract-x", "ProposalCreated", {"id": 3}, timestamp="t")
    assert event.to_dict() == {
        "contractAddress": "contract-x",
        "eventName": "ProposalCreated",
        "data": {"id": 3},
        "blockNumber": 0,
        "timestamp": "t",
    }


def test_execution_to_dict_defaults():
    result = ContractExecution().to_dict()
    assert result["success"] is False
    assert result["gasUsed"] == 0
    assert result["returnValue"] is None
    assert result["events"] == []
    assert result["logs"] == []


def test_execution_to_dict_includes_events_and_values():
    event = ContractEvent("contract-x", "Done", {"value": 1})
    execution = ContractExecution(
        success=True,
        gas_used=110,
        return_value=ContractOperation("RETURN", [5]),
        state_updates={"k": "v"},
        events=[event],
        logs=["Executing STORE operation"],
    )
    result = execution.to_dict()
    assert result["events"] == [event.to_dict()]
    assert result["returnValue"]["args"] == [5]
    assert result["stateUpdates"] == {"k": "v"}
    assert result["logs"] == ["Executing STORE operation"]
    assert json.loads(json.dumps(result)) == result


def test_contract_defaults():
    contract = Contract(address="contract-a", creator="GENESIS_ACCOUNT")
    other = Contract(address="contract-b", creator="GENESIS_ACCOUNT")
    contract.state["x"] = 1
    assert other.state == {}
    assert contract.balance == Balance(0)
    with contract.lock:
        assert contract.state["x"] == 1


def test_invocation_defaults():
    invocation = ContractInvocation(contract_address="contract-a", method="propose")
    assert invocation.gas_limit == 0
    assert invocation.value == ""
    assert invocation.args == []