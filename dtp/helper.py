from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional
import json
import os
import re

from eth_account import Account as EthAccount
from web3 import Web3

# plain value transfer, used for the funding transactions
TRANSFER_GAS = 21000

# highest `count` for `Load.setArray` that still fits a 60M gas block
MAX_LOAD_COUNT_PER_BLOCK = 2650

_KEY_PATTERN = re.compile(r"^(0[xX])?[0-9a-fA-F]{64}$")
_AMOUNT_PATTERN = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?)\s*([A-Za-z]+)?\s*$")

# ------------------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------------------

class DtpError(Exception):
    pass

class ConfigurationError(DtpError):
    pass

class FundingError(DtpError):
    def __init__(self, index, reason):
        super().__init__("Funding of account #{} failed: {}".format(index, reason))
        self.index = index
        self.reason = reason

class SubmissionError(DtpError):
    pass

class ReceiptTimeout(SubmissionError):
    pass

class ConnectivityError(DtpError):
    pass

# ------------------------------------------------------------------------------
# Records
# ------------------------------------------------------------------------------

class TransactionKind(Enum):
    LIGHT = "light"
    HEAVY = "heavy"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(
                "'{}' is not a valid transaction type, use 'light' or 'heavy'".format(value))


class SeedKey:
    """Holds the seed account's private key for a bounded lifetime.

    The key bytes are zeroed by `clear()`, which also runs when the object is
    used as a context manager and the block exits. Transactions are signed
    here, so no long-lived account object holds a copy of the key.
    """

    def __init__(self, key):
        if not isinstance(key, str) or not _KEY_PATTERN.match(key.strip()):
            raise ConfigurationError("malformed private key, expected 32 bytes of hex")
        self._key = bytearray(bytes.fromhex(key.strip()[-64:]))
        try:
            self.address = EthAccount.from_key(bytes(self._key)).address
        except ValueError as e:
            self.clear()
            raise ConfigurationError("invalid private key: {}".format(e)) from e
        self._cleared = False

    def sign_transaction(self, tx):
        if self._cleared:
            raise RuntimeError("Seed key has already been cleared.")
        return EthAccount.sign_transaction(tx, bytes(self._key))

    def clear(self):
        for i in range(len(self._key)):
            self._key[i] = 0
        self._cleared = True

    @property
    def cleared(self):
        return self._cleared

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.clear()
        return False

    def __repr__(self):
        return "SeedKey(address={})".format(getattr(self, "address", None))


@dataclass(frozen=True)
class Account:
    index: int
    address: str
    local: object = field(repr=False, compare=False)

    def sign(self, tx):
        return self.local.sign_transaction(tx)

    @property
    def private_key(self):
        return "0x" + bytes(self.local.key).hex()


@dataclass(frozen=True)
class FundingResult:
    account: Account
    tx_hash: str
    block_number: int
    transaction_index: int
    gas_cost: int
    confirmed: bool = True


@dataclass(frozen=True)
class TransactionOutcome:
    round: int
    account_index: int
    sender: str
    nonce: int
    tx_hash: Optional[str] = None
    gas_used: int = 0
    gas_cost: int = 0
    block_number: Optional[int] = None
    transaction_index: Optional[int] = None
    success: bool = False
    error: Optional[str] = None


@dataclass
class RunSummary:
    kind: TransactionKind
    accounts: int
    start_block: int = 0
    end_block: int = 0
    rounds: int = 0
    sent: int = 0
    confirmed: int = 0
    failed: int = 0
    gas_used: int = 0
    gas_cost: int = 0

    def record(self, outcome):
        self.sent += 1
        if outcome.success:
            self.confirmed += 1
        else:
            self.failed += 1
        # reverted transactions are mined and still pay for gas
        self.gas_used += outcome.gas_used
        self.gas_cost += outcome.gas_cost

    @property
    def blocks(self):
        return self.end_block - self.start_block

# ------------------------------------------------------------------------------
# Conversions
# ------------------------------------------------------------------------------

def parse_amount(value):
    """Parse '1000' (wei) or an amount with a unit such as '1.5 ether'."""
    match = _AMOUNT_PATTERN.match(str(value))
    if not match:
        raise ConfigurationError("funding amount '{}' is not a number".format(value))
    number, unit = match.groups()
    try:
        if unit is None:
            amount = int(number)
        else:
            amount = Web3.to_wei(Decimal(number), unit.lower())
    except (ValueError, InvalidOperation) as e:
        raise ConfigurationError("invalid funding amount '{}': {}".format(value, e)) from e
    if amount <= 0:
        raise ConfigurationError("funding amount must be positive, got '{}'".format(value))
    return int(amount)

def format_amount(wei, symbol):
    return "{:f} {}".format(Decimal(Web3.from_wei(wei, "ether")), symbol)

def gas_cost(receipt, gas_price):
    # legacy nodes do not report effectiveGasPrice
    price = receipt.get("effectiveGasPrice") or gas_price
    return receipt["gasUsed"] * price

def load_abi(name):
    path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "abi", name + ".json")
    with open(path) as f:
        artifact = json.load(f)
    return artifact["abi"]

def chunks(items, size):
    for i in range(0, len(items), size):
        yield items[i:i + size]
