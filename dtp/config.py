"""Command line and .env configuration for a producer run."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse
import argparse
import os

from dotenv import dotenv_values
from web3 import Web3

from .helper import (
    MAX_LOAD_COUNT_PER_BLOCK,
    ConfigurationError,
    SeedKey,
    TransactionKind,
    parse_amount,
)

DEFAULT_ENV_FILE = ".env"
DEFAULT_LOAD_COUNT = 1000
DEFAULT_BATCH_SIZE = 100
DEFAULT_RECEIPT_TIMEOUT = 300


@dataclass(frozen=True)
class RunConfig:
    funding_amount: int
    seed_key: SeedKey
    num_accounts: int
    transaction_kind: TransactionKind
    rpc_url: str
    num_blocks: Optional[int] = None
    counter_address: Optional[str] = None
    load_address: Optional[str] = None
    load_count: int = DEFAULT_LOAD_COUNT
    batch_size: int = DEFAULT_BATCH_SIZE
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    stats_file: Optional[str] = None
    show_keys: bool = False
    symbol: str = "TSSC"

    def __post_init__(self):
        if self.funding_amount <= 0:
            raise ConfigurationError("funding amount must be positive")
        if self.num_accounts < 1:
            raise ConfigurationError("number of accounts must be at least 1")
        if self.num_blocks is not None and self.num_blocks < 1:
            raise ConfigurationError("number of blocks must be at least 1")
        _check_url(self.rpc_url)
        if self.transaction_kind is TransactionKind.LIGHT and not self.counter_address:
            raise ConfigurationError(
                "light transactions need the Counter contract address "
                "(--counter-address or COUNTER)")
        if self.transaction_kind is TransactionKind.HEAVY and not self.load_address:
            raise ConfigurationError(
                "heavy transactions need the Load contract address "
                "(--load-address or LOAD)")
        if not 1 <= self.load_count <= MAX_LOAD_COUNT_PER_BLOCK:
            raise ConfigurationError(
                "load count must be within [1, {}]".format(MAX_LOAD_COUNT_PER_BLOCK))
        if self.batch_size < 1:
            raise ConfigurationError("batch size must be at least 1")
        if self.receipt_timeout <= 0:
            raise ConfigurationError("receipt timeout must be positive")


class _ArgumentParser(argparse.ArgumentParser):
    # surface usage errors as ConfigurationError instead of exiting
    def error(self, message):
        raise ConfigurationError(message)


def build_parser():
    parser = _ArgumentParser(
        prog="dtp",
        description="Domain Transaction Producer: fund fresh accounts from a seed "
                    "account and have them send light or heavy contract calls.")
    parser.add_argument("-f", "--funding-amount", required=True,
                        help="amount sent to each new account, in wei or with a unit, e.g. '1 ether'")
    parser.add_argument("-k", "--initial-funded-account-private-key",
                        help="private key of the seed account (default: $FUNDER_PRIVATE_KEY)")
    parser.add_argument("-a", "--num-accounts", type=int, required=True,
                        help="number of accounts to create and fund")
    parser.add_argument("-b", "--num-blocks", type=int,
                        help="stop once this many new blocks have been produced")
    parser.add_argument("-r", "--rpc-url",
                        help="node JSON-RPC endpoint (default: $RPC_URL)")
    parser.add_argument("-t", "--transaction-type", required=True,
                        help="'light' (Counter.increment) or 'heavy' (Load.setArray)")
    parser.add_argument("--counter-address", help="Counter contract (default: $COUNTER)")
    parser.add_argument("--load-address", help="Load contract (default: $LOAD)")
    parser.add_argument("--load-count", type=int, default=DEFAULT_LOAD_COUNT,
                        help="count passed to Load.setArray for heavy transactions")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
                        help="maximum number of submissions in flight at once")
    parser.add_argument("--receipt-timeout", type=float, default=DEFAULT_RECEIPT_TIMEOUT,
                        help="seconds to wait for each transaction receipt")
    parser.add_argument("--stats-file", help="write one line per transaction to this file")
    parser.add_argument("--env-file", default=DEFAULT_ENV_FILE,
                        help="file with FUNDER_PRIVATE_KEY, RPC_URL, COUNTER and LOAD defaults")
    parser.add_argument("--show-keys", action="store_true",
                        help="print the private keys of the created accounts")
    parser.add_argument("--symbol", default="TSSC", help="unit shown next to balances")
    return parser


def load_config(argv=None, environ=None):
    args = build_parser().parse_args(argv)

    # real environment wins over the .env file
    env = {k: v for k, v in dotenv_values(args.env_file).items() if v}
    env.update(os.environ if environ is None else environ)

    kind = TransactionKind.parse(args.transaction_type)
    funding_amount = parse_amount(args.funding_amount)

    rpc_url = args.rpc_url or env.get("RPC_URL")
    if not rpc_url:
        raise ConfigurationError("missing RPC URL: pass -r/--rpc-url or set RPC_URL")
    counter_address = _address(args.counter_address or env.get("COUNTER"), "Counter")
    load_address = _address(args.load_address or env.get("LOAD"), "Load")
    if args.stats_file:
        _check_writable(args.stats_file)

    key = args.initial_funded_account_private_key or env.get("FUNDER_PRIVATE_KEY")
    if not key:
        raise ConfigurationError(
            "missing seed private key: pass -k/--initial-funded-account-private-key "
            "or set FUNDER_PRIVATE_KEY")
    seed_key = SeedKey(key)

    try:
        return RunConfig(
            funding_amount=funding_amount,
            seed_key=seed_key,
            num_accounts=args.num_accounts,
            transaction_kind=kind,
            rpc_url=rpc_url,
            num_blocks=args.num_blocks,
            counter_address=counter_address,
            load_address=load_address,
            load_count=args.load_count,
            batch_size=args.batch_size,
            receipt_timeout=args.receipt_timeout,
            stats_file=args.stats_file,
            show_keys=args.show_keys,
            symbol=args.symbol,
        )
    except ConfigurationError:
        seed_key.clear()
        raise


def _address(value, name):
    if not value:
        return None
    if not Web3.is_address(value):
        raise ConfigurationError("'{}' is not a valid {} contract address".format(value, name))
    return Web3.to_checksum_address(value)


def _check_writable(path):
    # append mode leaves an existing file untouched
    try:
        open(path, "a").close()
    except OSError as e:
        raise ConfigurationError("can't write stats file {}: {}".format(path, e)) from e


def _check_url(url):
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError("'{}' is not a valid http(s) RPC URL".format(url))
