"""Round-based load generation from the funded accounts."""

import asyncio

from .helper import (
    ConnectivityError,
    RunSummary,
    SubmissionError,
    TransactionOutcome,
    chunks,
    gas_cost,
)


class LoadDriver:
    """Sends one transaction per account per round until the block limit.

    Without `num_blocks` the rounds never stop on their own. With it, the
    driver stops after the first round at whose end the chain has grown by
    at least `num_blocks` blocks since the driver started.

    `nonces` maps each sender to its next nonce. It is only touched by that
    sender's own submission: a rejected transaction leaves it unchanged, a
    mined one (successful or reverted) advances it, and a transaction whose
    fate is unknown (no receipt, an error while waiting for it, or the
    connection dropped while sending) sets it to None so it is re-read from
    the node before the account sends again. Failed transactions never stop the
    run; the account simply takes part in the next round.
    """

    def __init__(self, node, accounts, kind, reporter, num_blocks=None, batch_size=100):
        self.node = node
        self.accounts = list(accounts)
        self.kind = kind
        self.reporter = reporter
        self.num_blocks = num_blocks
        self.batch_size = batch_size
        self.nonces = {}
        self.summary = RunSummary(kind=kind, accounts=len(self.accounts))

    async def run(self):
        self.chain_id = await self.node.chain_id()
        start = await self.node.block_number()
        self.summary.start_block = start
        self.summary.end_block = start
        for account in self.accounts:
            self.nonces[account.address] = await self.node.get_nonce(account.address)
        self.reporter.load_started(self.summary)

        round_number = 0
        while True:
            round_number += 1
            await self.run_round(round_number)
            if self.limit_reached():
                break
        return self.summary

    def limit_reached(self):
        if self.num_blocks is None:
            return False
        return self.summary.blocks >= self.num_blocks

    async def run_round(self, round_number):
        self.reporter.round_started(round_number, self.summary.end_block)
        gas_price = await self.node.gas_price()

        outcomes = []
        unreachable = 0
        for batch in chunks(self.accounts, self.batch_size):
            results = await asyncio.gather(
                *(self._send(round_number, account, gas_price) for account in batch))
            for outcome, lost_connection in results:
                outcomes.append(outcome)
                unreachable += lost_connection
        self.summary.rounds = round_number

        # every single submission hit a dead node, nothing can progress
        if outcomes and unreachable == len(outcomes):
            raise ConnectivityError(
                "all {} transactions of round {} failed to reach the node: {}"
                .format(len(outcomes), round_number, outcomes[0].error))

        self.summary.end_block = await self.node.block_number()
        self.reporter.round_finished(round_number, outcomes, self.summary.end_block)
        return outcomes

    async def _send(self, round_number, account, gas_price):
        address = account.address
        nonce = self.nonces.get(address)
        try:
            if nonce is None:
                nonce = await self.node.get_nonce(address)
                self.nonces[address] = nonce
            tx = await self.node.build_call(
                self.kind, address, nonce, gas_price, self.chain_id)
            signed = account.sign(tx)
            tx_hash = await self.node.send_raw_transaction(signed.raw_transaction)
        except SubmissionError as e:
            # rejected by the node, the nonce is still free
            return self._failed(round_number, account, nonce, None, e)
        except ConnectivityError as e:
            # the node may or may not have seen the transaction
            self.nonces[address] = None
            return self._failed(round_number, account, nonce, None, e)

        try:
            receipt = await self.node.wait_for_receipt(tx_hash)
        except (SubmissionError, ConnectivityError) as e:
            # accepted but unconfirmed, re-read the nonce before the next send
            self.nonces[address] = None
            return self._failed(round_number, account, nonce, tx_hash, e)

        self.nonces[address] = nonce + 1
        success = receipt["status"] == 1
        outcome = TransactionOutcome(
            round=round_number,
            account_index=account.index,
            sender=address,
            nonce=nonce,
            tx_hash=tx_hash,
            gas_used=receipt["gasUsed"],
            gas_cost=gas_cost(receipt, gas_price),
            block_number=receipt["blockNumber"],
            transaction_index=receipt["transactionIndex"],
            success=success,
            error=None if success else "execution reverted",
        )
        self._record(outcome)
        return outcome, False

    def _failed(self, round_number, account, nonce, tx_hash, error):
        outcome = TransactionOutcome(
            round=round_number,
            account_index=account.index,
            sender=account.address,
            nonce=nonce,
            tx_hash=tx_hash,
            success=False,
            error=str(error),
        )
        self._record(outcome)
        return outcome, isinstance(error, ConnectivityError)

    def _record(self, outcome):
        self.summary.record(outcome)
        self.reporter.outcome(outcome)
