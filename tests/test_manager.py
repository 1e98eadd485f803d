import threading

import pytest

from tripchain.balance import (
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE,
    GENESIS_ADDRESS,
    TRIPCOIN,
    Balance,
)
from tripchain.contracts.manager import ContractManager, deploy_system_contracts
from tripchain.contracts.operations import (
    GAS_COST_BASE,
    GAS_COST_STORE,
    compute_code_hash,
)
from tripchain.contracts.structures import (
    ContractError,
    ContractInvocation,
    ContractMethod,
    ContractOperation,
    ContractTemplate,
)
from tripchain.currency import CurrencyManager


@pytest.fixture
def currency():
    return CurrencyManager()


@pytest.fixture
def manager(currency):
    return ContractManager(currency)


def _code():
    return [
        ContractOperation("METHOD", ["set", "set x", True]),
        ContractOperation("STORE", ["x", 5]),
        ContractOperation("RETURN", ["done"]),
        ContractOperation("METHOD", ["fail", "always fails", True]),
        ContractOperation("REVERT", ["nope"]),
        ContractOperation("METHOD", ["emit", "emit an event", True]),
        ContractOperation("EMIT_EVENT", ["Ping", {"n": 1}]),
    ]


def _invoke(address, method, **kwargs):
    return ContractInvocation(
        contract_address=address, method=method, caller=GENESIS_ADDRESS, **kwargs
    )


def test_create_contract_fields(manager):
    code = _code()
    contract = manager.create_contract(GENESIS_ADDRESS, code, {"a": 1}, None)
    assert contract.address.startswith("contract-")
    assert len(contract.address) == len("contract-") + 40
    assert contract.code_hash == compute_code_hash(code)
    assert contract.state == {"a": 1}
    assert manager.get_contract(contract.address) is contract


def test_create_contract_with_value_funds_it(manager, currency):
    value = Balance(5 * TRIPCOIN)
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, value)
    assert contract.balance == value
    assert currency.get_balance(contract.address) == value


def test_create_contract_insufficient_balance(manager):
    with pytest.raises(ContractError, match="insufficient balance"):
        manager.create_contract("poor", _code(), None, Balance(1))


def test_creation_increments_nonce_and_addresses_differ(manager, currency):
    first = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    second = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    assert first.address != second.address
    assert currency.get_account(GENESIS_ADDRESS).nonce == 2


def test_get_contract_missing(manager):
    with pytest.raises(ContractError, match="contract not found"):
        manager.get_contract("contract-missing")


def test_execute_contract_success(manager, currency):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    before = currency.get_balance(GENESIS_ADDRESS)
    execution = manager.execute_contract(_invoke(contract.address, "set"))
    assert execution.success is True
    assert execution.return_value == "done"
    assert execution.gas_used == 2 * GAS_COST_BASE + GAS_COST_STORE
    assert manager.get_contract_state(contract.address)["x"] == 5
    fee = currency.calculate_transaction_fee(execution.gas_used, Balance(DEFAULT_GAS_PRICE))
    assert currency.get_balance("SYSTEM_FEES") == fee
    assert currency.get_balance(GENESIS_ADDRESS) == before - fee


def test_execute_contract_failure_reported(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), {"k": "v"}, None)
    execution = manager.execute_contract(_invoke(contract.address, "fail"))
    assert execution.success is False
    assert execution.error_message == "nope"
    assert manager.get_contract_state(contract.address) == {"k": "v"}


def test_execute_contract_defaults_gas_limit(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    invocation = _invoke(contract.address, "set")
    manager.execute_contract(invocation)
    assert invocation.gas_limit == DEFAULT_GAS_LIMIT


@pytest.mark.parametrize(
    "address, method, message",
    [("", "set", "contract address is required"), ("contract-x", "", "method name is required")],
)
def test_execute_contract_requires_fields(manager, address, method, message):
    with pytest.raises(ContractError, match=message):
        manager.execute_contract(_invoke(address, method))


def test_execute_contract_unknown_method(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    with pytest.raises(ContractError, match="method not found: nothing"):
        manager.execute_contract(_invoke(contract.address, "nothing"))


def test_execute_contract_invalid_value(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    with pytest.raises(ContractError, match="invalid value"):
        manager.execute_contract(_invoke(contract.address, "set", value="abc"))


def test_execute_contract_value_credits_contract(manager, currency):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    manager.execute_contract(_invoke(contract.address, "set", value=str(TRIPCOIN)))
    assert contract.balance == Balance(TRIPCOIN)
    assert currency.get_balance(contract.address) == Balance(TRIPCOIN)


def test_event_listener_and_events(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    received = []
    called = threading.Event()

    def listener(event):
        received.append(event)
        called.set()

    manager.add_event_listener("Ping", listener)
    execution = manager.execute_contract(_invoke(contract.address, "emit"))
    assert called.wait(2.0)
    assert received[0].event_name == "Ping"
    assert received[0].data == {"n": 1}
    assert execution.events[0] is received[0]
    events = manager.get_contract_events(contract.address, "Ping", 10)
    assert [e.event_name for e in events] == ["Ping"]
    assert manager.get_contract_events(contract.address, "Other", 10) == []


def test_update_contract_code(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    new_code = [ContractOperation("METHOD", ["only", "", True])]
    with pytest.raises(ContractError, match="only contract creator"):
        manager.update_contract_code(contract.address, new_code, "someone")
    manager.update_contract_code(contract.address, new_code, GENESIS_ADDRESS)
    assert contract.code == new_code
    assert contract.code_hash == compute_code_hash(new_code)


def test_update_contract_code_missing(manager):
    with pytest.raises(ContractError, match="contract not found"):
        manager.update_contract_code("contract-missing", [], GENESIS_ADDRESS)


def test_templates(manager):
    with pytest.raises(ContractError, match="no templates registered"):
        manager.deploy_from_template("counter", GENESIS_ADDRESS, None, None)
    template = ContractTemplate(
        name="counter",
        methods={
            "get": ContractMethod(
                name="get", operations=[ContractOperation("LOAD", ["count"])], is_public=True
            ),
            "bump": ContractMethod(
                name="bump",
                operations=[
                    ContractOperation("STORE", ["count", 2]),
                    ContractOperation("RETURN", ["ok"]),
                ],
            ),
        },
        init_state={"count": 0, "owner": "a"},
    )
    manager.register_template(template)
    with pytest.raises(ContractError, match="template not found"):
        manager.deploy_from_template("missing", GENESIS_ADDRESS, None, None)
    contract = manager.deploy_from_template("counter", GENESIS_ADDRESS, {"owner": "b"}, None)
    assert contract.state == {"count": 0, "owner": "b"}
    assert [op.op_code for op in contract.code] == ["METHOD", "LOAD", "METHOD", "STORE", "RETURN"]
    execution = manager.execute_contract(_invoke(contract.address, "bump"))
    assert execution.return_value == "ok"
    assert manager.get_contract_state(contract.address)["count"] == 2


def test_get_contract_state_is_copy(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), {"a": 1}, None)
    state = manager.get_contract_state(contract.address)
    state["a"] = 99
    assert manager.get_contract_state(contract.address) == {"a": 1}


def test_execute_read_only_leaves_state(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), {"a": 1}, None)
    result = manager.execute_read_only(contract.address, "set", [], GENESIS_ADDRESS)
    assert result == "done"
    assert manager.get_contract_state(contract.address) == {"a": 1}


def test_execute_read_only_errors(manager):
    contract = manager.create_contract(GENESIS_ADDRESS, _code(), None, None)
    with pytest.raises(ContractError, match="nope"):
        manager.execute_read_only(contract.address, "fail", [], GENESIS_ADDRESS)
    with pytest.raises(ContractError, match="method not found"):
        manager.execute_read_only(contract.address, "absent", [], GENESIS_ADDRESS)


def test_deploy_system_contracts(manager, currency):
    registry = deploy_system_contracts(manager, {})
    assert set(registry) == {"governance", "validators", "rewards"}
    rewards = manager.get_contract(registry["rewards"])
    assert rewards.balance == Balance(100 * TRIPCOIN)
    assert currency.get_balance(rewards.address) == Balance(100 * TRIPCOIN)
    validators = manager.get_contract_state(registry["validators"])
    assert validators["min_stake"] == "100000000000000000000"
    governance = manager.get_contract_state(registry["governance"])
    assert governance["voting_period"] == "259200"