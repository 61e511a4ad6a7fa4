"""dtp: fund fresh accounts from a seed account and generate load with them."""

import asyncio
import sys

from .config import load_config
from .driver import LoadDriver
from .helper import ConfigurationError, DtpError, TransactionKind
from .node import Node
from .provision import check_seed_balance, fund_accounts, generate_accounts
from .report import Reporter, describe_action


async def produce(config, connect=Node.from_config):
    node = None
    try:
        node = await connect(config)
        reporter = Reporter(
            symbol=config.symbol,
            action=describe_action(config.transaction_kind, config.load_count),
            show_keys=config.show_keys,
            stats_path=config.stats_file,
        )
        with reporter:
            return await _produce(config, node, reporter)
    finally:
        # also covers a failed connect, before the funding stage ever runs
        config.seed_key.clear()
        if node is not None:
            await node.close()


async def _produce(config, node, reporter):
    light = config.transaction_kind is TransactionKind.LIGHT
    funder_address = config.seed_key.address
    gas_price = await node.gas_price()

    # the seed key only lives for the funding stage
    with config.seed_key as seed:
        initial, required = await check_seed_balance(
            node, funder_address, config.funding_amount, config.num_accounts, gas_price)
        reporter.funder_balance("initial", initial)
        if initial < required:
            reporter.insufficient_balance(initial, required)

        accounts = generate_accounts(config.num_accounts)
        for account in accounts:
            reporter.account_created(account)
        await fund_accounts(node, seed, accounts, config.funding_amount, reporter,
                            gas_price=gas_price)

    counter_before = await node.counter_number() if light else None
    driver = LoadDriver(node, accounts, config.transaction_kind, reporter,
                        num_blocks=config.num_blocks, batch_size=config.batch_size)
    try:
        await driver.run()
    except asyncio.CancelledError:
        # Ctrl-C is the normal way to end a run without a block limit
        asyncio.current_task().uncancel()
        reporter.interrupted()
    counter_after = await node.counter_number() if light else None

    reporter.summary(driver.summary, counter_before, counter_after)
    final = await node.get_balance(funder_address)
    reporter.funder_spent(initial, final)
    return driver.summary


def main(argv=None):
    try:
        config = load_config(argv)
    except ConfigurationError as e:
        sys.exit("Error: {}".format(e))

    try:
        asyncio.run(produce(config))
    except DtpError as e:
        sys.exit("Error: {}".format(e))
    except KeyboardInterrupt:
        sys.exit("Interrupted.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
