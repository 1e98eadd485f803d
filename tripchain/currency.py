"""Accounts, balances, staking and gas pricing for TripCoin."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from fractions import Fraction

from .balance import (
    BLOCK_REWARD,
    DEFAULT_GAS_PRICE,
    GENESIS_ADDRESS,
    INITIAL_SUPPLY,
    MINIMUM_GAS_PRICE,
    Balance,
    CurrencyError,
)
from .logger import log_info

_RESERVED_PERCENT = 5
_VALIDATOR_FEE_PERCENT = 70
_TARGET_UTILIZATION = 0.5
_MAX_GAS_ADJUSTMENT = 0.125


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _as_balance(amount: Balance | int) -> Balance:
    if isinstance(amount, Balance):
        return amount
    return Balance(amount)


@dataclass
class Account:
    """A TripCoin account with its balance, stake and activity data."""

    address: str
    balance: Balance = field(default_factory=Balance)
    nonce: int = 0
    code_hash: str = ""
    storage_root: str = ""
    is_contract: bool = False
    created_at: str = field(default_factory=_now)
    last_activity: str = field(default_factory=_now)
    frozen: bool = False
    stake: Balance = field(default_factory=Balance)


@dataclass
class GasParameters:
    """Gas pricing parameters of the network."""

    min_gas_price: Balance = field(default_factory=lambda: Balance(MINIMUM_GAS_PRICE))
    network_gas_price: Balance = field(default_factory=lambda: Balance(DEFAULT_GAS_PRICE))
    base_fee_multiplier: float = 1.0
    last_updated: datetime = field(default_factory=datetime.now)


class CurrencyManager:
    """Keeps TripCoin accounts and the total supply."""

    def __init__(self) -> None:
        self.symbol = "TCC"
        self._lock = threading.RLock()
        self._accounts: dict[str, Account] = {}
        supply = Balance(INITIAL_SUPPLY)
        self._total_supply = supply
        self.reserved_funds = Balance(supply.amount * _RESERVED_PERCENT // 100)
        self.gas_parameters = GasParameters()
        self._accounts[GENESIS_ADDRESS] = Account(
            address=GENESIS_ADDRESS,
            balance=supply - self.reserved_funds,
        )
        log_info("CurrencyManager initialized with total supply of %s", supply.tripcoin_string())
        log_info("Reserved funds: %s", self.reserved_funds.tripcoin_string())

    def create_account(self, address: str) -> Account:
        """Create an empty account, or return the existing one."""
        with self._lock:
            existing = self._accounts.get(address)
            if existing is not None:
                return existing
            account = Account(address=address)
            self._accounts[address] = account
        log_info("New account created: %s", address)
        return account

    def get_account(self, address: str) -> Account:
        """Return the account, creating it if it does not exist."""
        with self._lock:
            account = self._accounts.get(address)
        if account is None:
            return self.create_account(address)
        return account

    def account_exists(self, address: str) -> bool:
        with self._lock:
            return address in self._accounts

    def transfer_funds(self, sender: str, recipient: str, amount: Balance | int) -> None:
        """Move ``amount`` from ``sender`` to ``recipient``."""
        amount = _as_balance(amount)
        with self._lock:
            if amount.amount <= 0:
                raise CurrencyError("invalid amount: must be positive")
            source = self._accounts.get(sender)
            if source is None:
                raise CurrencyError(f"source account does not exist: {sender}")
            if source.frozen:
                raise CurrencyError("source account is frozen")
            if source.balance < amount:
                raise CurrencyError(
                    f"insufficient balance: has {source.balance.tripcoin_string()}, "
                    f"needs {amount.tripcoin_string()}"
                )
            target = self.create_account(recipient)
            source.balance = source.balance - amount
            target.balance = target.balance + amount
            now = _now()
            source.last_activity = now
            target.last_activity = now
            source.nonce += 1
        log_info("Transferred %s from %s to %s", amount.tripcoin_string(), sender, recipient)

    def get_balance(self, address: str) -> Balance:
        """Return the balance of an account; zero if it does not exist."""
        with self._lock:
            account = self._accounts.get(address)
            return account.balance if account is not None else Balance(0)

    def mint_tokens(self, recipient: str, amount: Balance | int) -> None:
        """Create new tokens in ``recipient``'s account."""
        amount = _as_balance(amount)
        with self._lock:
            if amount.amount <= 0:
                raise CurrencyError("invalid amount: must be positive")
            account = self._accounts.get(recipient)
            if account is None:
                account = Account(address=recipient)
                self._accounts[recipient] = account
            account.balance = account.balance + amount
            self._total_supply = self._total_supply + amount
            account.last_activity = _now()
            supply = self._total_supply
        log_info("Minted %s to %s", amount.tripcoin_string(), recipient)
        log_info("New total supply: %s", supply.tripcoin_string())

    def burn_tokens(self, sender: str, amount: Balance | int) -> Balance:
        """Remove tokens from circulation and return the amount burned.

        An amount not above one percent of the balance is raised to that
        one percent.
        """
        amount = _as_balance(amount)
        with self._lock:
            account = self._accounts.get(sender)
            if account is None:
                raise CurrencyError(f"account does not exist: {sender}")
            max_burn = account.balance // 100
            if amount <= max_burn:
                amount = max_burn
            if account.balance < amount:
                raise CurrencyError(
                    f"insufficient balance for burning: has {account.balance.tripcoin_string()}, "
                    f"needs {amount.tripcoin_string()}"
                )
            account.balance = account.balance - amount
            self._total_supply = self._total_supply - amount
            account.last_activity = _now()
            supply = self._total_supply
        log_info("Burned %s from %s", amount.tripcoin_string(), sender)
        log_info("New total supply: %s", supply.tripcoin_string())
        return amount

    def reward_block_producer(self, address: str) -> None:
        """Mint the block reward to ``address``."""
        self.mint_tokens(address, Balance(BLOCK_REWARD))

    def calculate_transaction_fee(self, gas_used: int, gas_price: Balance | int) -> Balance:
        """Return gas used times gas price."""
        return Balance(int(gas_used) * _as_balance(gas_price).amount)

    def distribute_fees(self, fees: Balance | int, validator: str) -> tuple[Balance, Balance]:
        """Give 70% of ``fees`` to the validator and burn the rest.

        Returns the validator's share and the burned share.
        """
        fees = _as_balance(fees)
        validator_share = Balance(fees.amount * _VALIDATOR_FEE_PERCENT // 100)
        burned = fees - validator_share
        with self._lock:
            account = self.get_account(validator)
            account.balance = account.balance + validator_share
            self._total_supply = self._total_supply - burned
        log_info(
            "Fee distribution: %s to validator, %s burned",
            validator_share.tripcoin_string(),
            burned.tripcoin_string(),
        )
        return validator_share, burned

    def total_supply(self) -> Balance:
        with self._lock:
            return self._total_supply

    def network_gas_price(self) -> Balance:
        with self._lock:
            return self.gas_parameters.network_gas_price

    def update_network_gas_price(self, block_utilization: float) -> Balance:
        """Adjust the gas price toward 50% block utilisation and return it."""
        multiplier = 1.0 + (block_utilization - _TARGET_UTILIZATION) * _MAX_GAS_ADJUSTMENT
        with self._lock:
            params = self.gas_parameters
            exact = Fraction(params.network_gas_price.amount) * Fraction(multiplier)
            new_price = Balance(int(exact))
            if new_price < params.min_gas_price:
                new_price = params.min_gas_price
            params.network_gas_price = new_price
            params.last_updated = datetime.now()
        log_info(
            "Updated network gas price to %s (utilization: %.2f%%)",
            new_price.tripcoin_string(),
            block_utilization * 100,
        )
        return new_price

    def stake_tokens(self, address: str, amount: Balance | int) -> None:
        """Move ``amount`` from the account's balance into its stake."""
        amount = _as_balance(amount)
        with self._lock:
            if amount.amount <= 0:
                raise CurrencyError("invalid stake amount: must be positive")
            account = self._accounts.get(address)
            if account is None:
                raise CurrencyError(f"account does not exist: {address}")
            if account.balance < amount:
                raise CurrencyError(
                    f"insufficient balance for staking: has {account.balance.tripcoin_string()}, "
                    f"needs {amount.tripcoin_string()}"
                )
            account.balance = account.balance - amount
            account.stake = account.stake + amount
            account.last_activity = _now()
            total = account.stake
        log_info(
            "%s staked %s (Total stake: %s)",
            address,
            amount.tripcoin_string(),
            total.tripcoin_string(),
        )

    def unstake_tokens(self, address: str, amount: Balance | int) -> None:
        """Move ``amount`` from the account's stake back to its balance."""
        amount = _as_balance(amount)
        with self._lock:
            if amount.amount <= 0:
                raise CurrencyError("invalid unstake amount: must be positive")
            account = self._accounts.get(address)
            if account is None:
                raise CurrencyError(f"account does not exist: {address}")
            if account.stake < amount:
                raise CurrencyError(
                    f"insufficient stake: has {account.stake.tripcoin_string()}, "
                    f"wants to unstake {amount.tripcoin_string()}"
                )
            account.stake = account.stake - amount
            account.balance = account.balance + amount
            account.last_activity = _now()
            remaining = account.stake
        log_info(
            "%s unstaked %s (Remaining stake: %s)",
            address,
            amount.tripcoin_string(),
            remaining.tripcoin_string(),
        )

    def get_stake(self, address: str) -> Balance:
        with self._lock:
            account = self._accounts.get(address)
            return account.stake if account is not None else Balance(0)

    def process_block_rewards(self, validator: str, fees: Balance | int) -> None:
        """Mint the block reward and distribute the block's fees."""
        self.reward_block_producer(validator)
        self.distribute_fees(fees, validator)