"""Console output of a run, plus the optional per-transaction stats file."""

from .helper import TransactionKind, format_amount

STATS_COLUMNS = "round account block index gas_used gas_cost status tx_hash"


def describe_action(kind, load_count):
    if kind is TransactionKind.LIGHT:
        return "incremented the Counter"
    return "set Array with count {}".format(load_count)


class Reporter:

    def __init__(self, symbol="TSSC", action="sent a transaction", verbose=True,
                 show_keys=False, stats_path=None):
        self.symbol = symbol
        self.action = action
        self.verbose = verbose
        self.show_keys = show_keys
        self.stats_path = stats_path
        self._stats = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def close(self):
        if self._stats is not None:
            self._stats.close()
            self._stats = None

    # --------------------------------------------------------------------------
    # provisioning
    # --------------------------------------------------------------------------

    def funder_balance(self, label, wei):
        print("\nFunder's {} balance: {}.".format(label, format_amount(wei, self.symbol)))

    def insufficient_balance(self, balance, required):
        print("Warning: funder has insufficient balance by {} (needs {} for funding and gas)."
              .format(format_amount(required - balance, self.symbol),
                      format_amount(required, self.symbol)))

    def account_created(self, account):
        print("\nAddress[{}]:     {}".format(account.index, account.address))
        if self.show_keys:
            print("Private key[{}]: {}".format(account.index, account.private_key))

    def funded(self, result):
        print("Fund sent to '{}' with tx hash: '{}' indexed at #{} in block #{}, fee '{}'."
              .format(result.account.address, result.tx_hash, result.transaction_index,
                      result.block_number, format_amount(result.gas_cost, self.symbol)),
              flush=True)

    # --------------------------------------------------------------------------
    # load
    # --------------------------------------------------------------------------

    def load_started(self, summary):
        print("\n=====\nSending {} transactions from {} accounts, starting at block #{}."
              .format(summary.kind.value, summary.accounts, summary.start_block))
        if self.stats_path:
            self._stats = open(self.stats_path, "w")
            self._stats.write("# {} {} {}\n".format(
                summary.kind.value, summary.accounts, summary.start_block))
            self._stats.write("# {}\n".format(STATS_COLUMNS))

    def round_started(self, round_number, height):
        if self.verbose:
            print("\n--- Round {} (block #{}) ---".format(round_number, height))

    def outcome(self, outcome):
        if outcome.success:
            print("'{}' {}, which incurred a gas fee of '{}', has a tx hash: '{}', "
                  "indexed at #{} in block #{}."
                  .format(outcome.sender, self.action,
                          format_amount(outcome.gas_cost, self.symbol), outcome.tx_hash,
                          outcome.transaction_index, outcome.block_number),
                  flush=True)
        elif outcome.block_number is not None:
            print("'{}' transaction '{}' reverted in block #{} after using {} gas."
                  .format(outcome.sender, outcome.tx_hash, outcome.block_number,
                          outcome.gas_used),
                  flush=True)
        else:
            print("'{}' transaction with nonce {} failed: {}"
                  .format(outcome.sender, outcome.nonce, outcome.error),
                  flush=True)
        if self._stats is not None:
            self._stats.write(format_stats_line(outcome) + "\n")
            self._stats.flush()

    def round_finished(self, round_number, outcomes, height):
        if self.verbose:
            failed = sum(1 for o in outcomes if not o.success)
            print("Round {} done at block #{}: {} sent, {} failed."
                  .format(round_number, height, len(outcomes), failed))

    def interrupted(self):
        print("\nInterrupted, stopping the load.")

    # --------------------------------------------------------------------------
    # summary
    # --------------------------------------------------------------------------

    def summary(self, summary, counter_before=None, counter_after=None):
        print("\n=====\n{} rounds over {} blocks (#{} -> #{}): {} transactions, "
              "{} confirmed, {} failed."
              .format(summary.rounds, summary.blocks, summary.start_block, summary.end_block,
                      summary.sent, summary.confirmed, summary.failed))
        print("Total gas used: {}, total fees: {}."
              .format(summary.gas_used, format_amount(summary.gas_cost, self.symbol)))
        if counter_before is not None and counter_after is not None:
            print("Number stored in 'Counter' before calls: {}, after {} calls: {}."
                  .format(counter_before, summary.confirmed, counter_after))

    def funder_spent(self, initial, final):
        self.funder_balance("final", final)
        print("Funder spent: {}".format(format_amount(max(initial - final, 0), self.symbol)))


def format_stats_line(outcome):
    return "{} {} {} {} {} {} {} {}".format(
        outcome.round,
        outcome.account_index,
        -1 if outcome.block_number is None else outcome.block_number,
        -1 if outcome.transaction_index is None else outcome.transaction_index,
        outcome.gas_used,
        outcome.gas_cost,
        1 if outcome.success else 0,
        outcome.tx_hash or "-",
    )
