"""Create the load accounts and fund them from the seed account."""

from eth_account import Account as EthAccount

from .helper import (
    TRANSFER_GAS,
    Account,
    ConnectivityError,
    FundingError,
    FundingResult,
    SubmissionError,
    gas_cost,
)


def generate_accounts(num_accounts):
    accounts = []
    seen = set()
    while len(accounts) < num_accounts:
        local = EthAccount.create()
        # a collision is practically impossible, but addresses must be unique
        if local.address in seen:
            continue
        seen.add(local.address)
        accounts.append(Account(index=len(accounts), address=local.address, local=local))
    return accounts


async def check_seed_balance(node, address, amount, num_accounts, gas_price):
    balance = await node.get_balance(address)
    required = num_accounts * (amount + TRANSFER_GAS * gas_price)
    return balance, required


async def fund_accounts(node, funder, accounts, amount, reporter, gas_price=None):
    """Send `amount` to every account, one transfer at a time.

    Each transfer is signed with the next seed nonce and must be mined
    before the following one is sent. The first failure raises FundingError
    carrying the index of the account that could not be funded.
    """
    chain_id = await node.chain_id()
    if gas_price is None:
        gas_price = await node.gas_price()
    nonce = await node.get_nonce(funder.address)

    results = []
    for account in accounts:
        tx = {
            "to": account.address,
            "value": amount,
            "gas": TRANSFER_GAS,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }
        signed = funder.sign_transaction(tx)
        try:
            tx_hash = await node.send_raw_transaction(signed.raw_transaction)
            receipt = await node.wait_for_receipt(tx_hash)
            if receipt["status"] != 1:
                raise FundingError(account.index, "transfer {} reverted".format(tx_hash))
            # the seed account's nonce must move on after each mined transfer
            mined_nonce = await node.get_nonce(funder.address, "latest")
        except (SubmissionError, ConnectivityError) as e:
            raise FundingError(account.index, str(e)) from e
        if mined_nonce <= nonce:
            raise FundingError(account.index,
                               "seed nonce did not advance past {}".format(nonce))
        nonce += 1

        result = FundingResult(
            account=account,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            transaction_index=receipt["transactionIndex"],
            gas_cost=gas_cost(receipt, gas_price),
        )
        reporter.funded(result)
        results.append(result)
    return results
