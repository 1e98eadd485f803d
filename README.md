# tripchain

Building blocks for a small TripCoin ledger:

- **Balances** (`tripchain.balance`) counted in the smallest unit
  (18 decimals), with exact integer arithmetic and a human-readable TCC
  rendering.
- **Accounts and currency management** (`tripchain.currency`): transfers,
  minting, burning, staking, fee distribution and a demand-driven network
  gas price.
- **Block records** (`tripchain.models`): `Block`, `Transaction`,
  `CriticalProcess` and `BlockDataTransaction`, each with `to_dict` and
  `from_dict` for their JSON shapes.
- **Mempools** (`tripchain.mempool`) holding pending transactions or
  critical processes.
- **Smart contracts** (`tripchain.contracts`) made of simple operations
  (`STORE`, `LOAD`, `TRANSFER`, `EMIT_EVENT`, `ADD`/`SUB`/`MUL`/`DIV`,
  `COMPARE`, `REQUIRE`, `REVERT`, `IF`, `CALL`, `NATIVE_CALL`, `RETURN`),
  run by a gas-metered interpreter.

The package has no dependencies outside the standard library.

## Balances

```python
from tripchain.balance import Balance, from_tripcoin

fee = Balance.from_string("1500000000000000000")
print(fee.tripcoin_string())                          # 1.5 TCC
print((fee + from_tripcoin(2)).tripcoin_string())     # 3.5 TCC
```

Strings that are not base-10 integers raise `CurrencyError`. Division
(`//`) by zero raises `ZeroDivisionError`. `to_json` and `from_json`
represent a balance as a decimal string.

## Accounts

```python
from tripchain.balance import Balance
from tripchain.currency import CurrencyManager

ledger = CurrencyManager()            # the genesis account holds 95% of the initial supply
ledger.create_account("alice")
ledger.transfer_funds("GENESIS_ACCOUNT", "alice", Balance.from_string("5000000000000000000"))
print(ledger.get_balance("alice").tripcoin_string())   # 5 TCC

ledger.stake_tokens("alice", Balance.from_string("1000000000000000000"))
print(ledger.get_stake("alice").tripcoin_string())     # 1 TCC
```

Invalid amounts, missing or frozen accounts and insufficient funds raise
`CurrencyError`. `process_block_rewards(validator, fees)` mints the 2 TCC
block reward and gives 70% of the fees to the validator, burning the rest.
`update_network_gas_price(utilization)` moves the gas price toward 50%
block utilisation, never below the minimum of 1 Proton.

## Mempools

```python
from tripchain.mempool import Mempool
from tripchain.models import Transaction

pool = Mempool()
pool.add(Transaction.from_dict({"processId": "tx-1", "gasLimit": 21000}))
print(len(pool))                      # 1
batch = pool.pending_items()          # at most 100 items
pool.remove_processed(batch)
print(len(pool))                      # 0
```

Any object with an `item_id` property can be stored.

## Contracts

```python
from tripchain.currency import CurrencyManager
from tripchain.contracts.manager import ContractManager
from tripchain.contracts.structures import ContractInvocation, ContractOperation

manager = ContractManager(CurrencyManager())
contract = manager.create_contract(
    "GENESIS_ACCOUNT",
    [
        ContractOperation("METHOD", ["get_limit", "Read the limit", True]),
        ContractOperation("RETURN", ["42"]),
    ],
    {"limit": "42"},
    None,
)
print(manager.get_contract_state(contract.address))   # {'limit': '42'}

execution = manager.execute_contract(
    ContractInvocation(
        contract_address=contract.address,
        method="get_limit",
        caller="GENESIS_ACCOUNT",
    )
)
print(execution.success, execution.return_value, execution.gas_used)   # True 42 10
```

`execute_contract` charges the caller gas used times gas price (20 Proton
by default) and sends it to the `SYSTEM_FEES` account. Invalid invocations
and unknown contracts or methods raise `ContractError`; failures while the
code runs are reported in the returned `ContractExecution`
(`success`, `error_message`). `execute_read_only` runs a method and puts the
contract state back as it was.

Other `ContractManager` methods: `update_contract_code` (creator only),
`register_template` and `deploy_from_template` with `ContractTemplate` and
`ContractMethod`, `add_event_listener` (`"*"` for every event, each listener
called on its own thread) and `get_contract_events`.

`deploy_system_contracts(manager, registry)` deploys governance,
validator-registry and rewards contracts from the genesis account and
records their addresses in `registry` under `"governance"`, `"validators"`
and `"rewards"`.

The pure helpers in `tripchain.contracts.operations` can be used on their
own:

```python
from tripchain.contracts.operations import arithmetic, compare, generate_contract_address

print(arithmetic("ADD", "2", "3"))     # '5'  (decimal strings are big integers)
print(compare(3, "4", "<"))            # True
print(generate_contract_address("alice", 0, "2024-01-01T00:00:00Z")[:9])   # contract-
```

## Logging

Messages go through the standard `logging` module under the `tripchain`
logger via `tripchain.logger` (`log_info`, `log_debug`, `log_error`,
`log_security_event`); configure logging (for example
`logging.basicConfig(level=logging.DEBUG)`) to see them. Debug messages can
be switched off with `set_verbose(False)`. `print_startup_message(node_id,
port)` prints a boxed banner.

## What this package does not do

It has no networking: there is no HTTP server or API, no peer list,
peer discovery, block broadcasting or chain synchronisation. It does not
build, forge, validate or store chains of blocks, has no consensus
mechanism, and keeps everything in memory; nothing is written to disk. It
provides no command-line program.