import asyncio

import pytest
import rlp
from eth_account import Account as EthAccount
from web3 import Web3

from dtp.helper import (
    ConnectivityError,
    ReceiptTimeout,
    SeedKey,
    SubmissionError,
    TransactionKind,
)
from dtp.report import Reporter

COUNTER = Web3.to_checksum_address("0x" + "c0" * 20)
LOAD = Web3.to_checksum_address("0x" + "10" * 20)

LIGHT_GAS = 43_000
HEAVY_GAS = 5_500_000

# anvil's first default account
SEED_KEY = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class FakeNode:
    """In-memory node with the same coroutine surface as dtp.node.Node.

    Accepted transactions wait in a pool; the first receipt request mines
    the whole pool into one new block. Accepted submissions yield to the
    event loop once, so concurrently sent transactions land in the same block.
    """

    def __init__(self, gas_price=10 ** 9, chain_id=1337, height=100):
        self.height = height
        self._gas_price = gas_price
        self._chain_id = chain_id
        self.balances = {}
        self.pending_nonces = {}
        self.mined_nonces = {}
        self.pool = []
        self.txs = {}
        self.receipts = {}
        self.sent = []
        self.built = []
        self.counter = 0
        self.closed = False
        # failure injection
        self.reject = set()
        self.revert = set()
        self.timeout = set()
        self.receipt_errors = set()
        self.down = False

    # chain state

    async def chain_id(self):
        return self._chain_id

    async def gas_price(self):
        return self._gas_price

    async def block_number(self):
        return self.height

    async def get_balance(self, address):
        return self.balances.get(address, 0)

    async def get_nonce(self, address, block="pending"):
        if block == "latest":
            return self.mined_nonces.get(address, 0)
        return self.pending_nonces.get(address, 0)

    async def counter_number(self):
        return self.counter

    async def close(self):
        self.closed = True

    # transactions

    async def build_call(self, kind, sender, nonce, gas_price, chain_id):
        self.built.append((kind, sender, nonce))
        if kind is TransactionKind.LIGHT:
            to, data, gas = COUNTER, "0xd09de08a", LIGHT_GAS
        else:
            to, data, gas = LOAD, "0x2e6b1b7d" + "%064x" % 1000, HEAVY_GAS
        return {
            "to": to,
            "data": data,
            "value": 0,
            "gas": gas,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }

    async def build_deployment(self, abi, bytecode, sender, nonce, gas_price, chain_id):
        return {
            "data": bytecode,
            "value": 0,
            "gas": 1_000_000,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }

    async def send_raw_transaction(self, raw_transaction):
        if self.down:
            raise ConnectivityError("eth_sendRawTransaction failed: connection refused")
        sender = EthAccount.recover_transaction(raw_transaction)
        fields = rlp.decode(bytes(raw_transaction))
        nonce, gas_price, gas = (int.from_bytes(f, "big") for f in fields[:3])
        to = Web3.to_checksum_address(fields[3]) if fields[3] else None
        value = int.from_bytes(fields[4], "big")

        if sender in self.reject:
            raise SubmissionError("eth_sendRawTransaction rejected: replacement underpriced")
        if nonce != self.pending_nonces.get(sender, 0):
            raise SubmissionError("eth_sendRawTransaction rejected: nonce {} expected {}"
                                  .format(nonce, self.pending_nonces.get(sender, 0)))
        if self.balances.get(sender, 0) < value + gas * gas_price:
            raise SubmissionError(
                "eth_sendRawTransaction rejected: insufficient funds for gas * price + value")

        tx_hash = Web3.to_hex(Web3.keccak(bytes(raw_transaction)))
        self.pending_nonces[sender] = nonce + 1
        self.txs[tx_hash] = dict(sender=sender, nonce=nonce, to=to, value=value, gas=gas,
                                 gas_price=gas_price, data=fields[5])
        self.pool.append(tx_hash)
        self.sent.append((sender, nonce, tx_hash))
        await asyncio.sleep(0)
        return tx_hash

    async def wait_for_receipt(self, tx_hash):
        if self.txs[tx_hash]["sender"] in self.timeout:
            raise ReceiptTimeout("no receipt for {}".format(tx_hash))
        if self.txs[tx_hash]["sender"] in self.receipt_errors:
            raise SubmissionError("eth_getTransactionReceipt rejected: limit exceeded")
        if tx_hash not in self.receipts:
            self.mine()
        return self.receipts[tx_hash]

    def mine(self):
        self.height += 1
        for index, tx_hash in enumerate(self.pool):
            tx = self.txs[tx_hash]
            sender = tx["sender"]
            status = 0 if sender in self.revert else 1
            gas_used = 21_000 if not tx["data"] else tx["gas"] - 1_000
            self.balances[sender] -= gas_used * tx["gas_price"]
            if status:
                self.balances[sender] -= tx["value"]
                if tx["to"] is not None:
                    self.balances[tx["to"]] = self.balances.get(tx["to"], 0) + tx["value"]
                if tx["to"] == COUNTER:
                    self.counter += 1
            self.mined_nonces[sender] = tx["nonce"] + 1
            self.receipts[tx_hash] = {
                "transactionHash": tx_hash,
                "from": sender,
                "gasUsed": gas_used,
                "effectiveGasPrice": tx["gas_price"],
                "blockNumber": self.height,
                "transactionIndex": index,
                "status": status,
                "contractAddress": None if tx["to"] else
                    Web3.to_checksum_address(Web3.keccak(text=tx_hash)[-20:]),
            }
        self.pool = []


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def funder(node):
    seed = SeedKey(SEED_KEY)
    node.balances[seed.address] = 10 ** 21
    return seed


@pytest.fixture
def reporter():
    return Reporter(verbose=False)
