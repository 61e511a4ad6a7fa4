"""Async access to the node, the Counter and the Load contracts."""

from aiohttp import ClientError
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from .helper import (
    ConnectivityError,
    ReceiptTimeout,
    SubmissionError,
    TransactionKind,
    load_abi,
)

RECEIPT_POLL_LATENCY = 0.5


class Node:

    def __init__(self, w3, counter_address=None, load_address=None, load_count=1000,
                 receipt_timeout=300):
        self.w3 = w3
        self.load_count = load_count
        self.receipt_timeout = receipt_timeout
        self.counter = None
        self.load = None
        if counter_address:
            self.counter = w3.eth.contract(address=counter_address, abi=load_abi("counter"))
        if load_address:
            self.load = w3.eth.contract(address=load_address, abi=load_abi("load"))

    @classmethod
    async def connect(cls, rpc_url, **options):
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        if not await w3.is_connected():
            await w3.provider.disconnect()
            raise ConnectivityError(
                "Couldn't connect to the blockchain via web3 at {}".format(rpc_url))
        return cls(w3, **options)

    @classmethod
    async def from_config(cls, config):
        return await cls.connect(
            config.rpc_url,
            counter_address=config.counter_address,
            load_address=config.load_address,
            load_count=config.load_count,
            receipt_timeout=config.receipt_timeout)

    async def close(self):
        await self.w3.provider.disconnect()

    # --------------------------------------------------------------------------
    # chain state
    # --------------------------------------------------------------------------

    async def chain_id(self):
        return await self._query(self.w3.eth.chain_id, "eth_chainId")

    async def gas_price(self):
        return await self._query(self.w3.eth.gas_price, "eth_gasPrice")

    async def block_number(self):
        return await self._query(self.w3.eth.block_number, "eth_blockNumber")

    async def get_balance(self, address):
        return await self._query(self.w3.eth.get_balance(address), "eth_getBalance")

    async def get_nonce(self, address, block="pending"):
        return await self._query(
            self.w3.eth.get_transaction_count(address, block), "eth_getTransactionCount")

    async def counter_number(self):
        return await self._query(self.counter.functions.number().call(), "Counter.number")

    # --------------------------------------------------------------------------
    # transactions
    # --------------------------------------------------------------------------

    async def build_call(self, kind, sender, nonce, gas_price, chain_id):
        params = {
            "from": sender,
            "nonce": nonce,
            "gasPrice": gas_price,
            "chainId": chain_id,
        }
        if kind is TransactionKind.LIGHT:
            function = self.counter.functions.increment()
        else:
            function = self.load.functions.setArray(self.load_count)
        # gas is estimated by the node, a call that would revert fails here
        return await self._submit(function.build_transaction(params), "gas estimation")

    async def build_deployment(self, abi, bytecode, sender, nonce, gas_price, chain_id):
        contract = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        params = {
            "from": sender,
            "nonce": nonce,
            "gasPrice": gas_price,
            "chainId": chain_id,
        }
        return await self._submit(contract.constructor().build_transaction(params),
                                  "gas estimation")

    async def send_raw_transaction(self, raw_transaction):
        tx_hash = await self._submit(
            self.w3.eth.send_raw_transaction(raw_transaction), "eth_sendRawTransaction")
        return AsyncWeb3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash):
        return await self._submit(self._receipt(tx_hash), "eth_getTransactionReceipt")

    async def _receipt(self, tx_hash):
        try:
            return await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout, poll_latency=RECEIPT_POLL_LATENCY)
        except TimeExhausted as e:
            raise ReceiptTimeout(
                "no receipt for {} after {}s".format(tx_hash, self.receipt_timeout)) from e

    # --------------------------------------------------------------------------
    # error mapping
    # --------------------------------------------------------------------------

    async def _query(self, awaitable, what):
        try:
            return await awaitable
        except (ClientError, OSError) as e:
            raise ConnectivityError("{} failed: {}".format(what, e)) from e

    async def _submit(self, awaitable, what):
        try:
            return await self._query(awaitable, what)
        except (Web3Exception, ValueError) as e:
            raise SubmissionError("{} rejected: {}".format(what, e)) from e
