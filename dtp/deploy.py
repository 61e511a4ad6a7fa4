"""dtp-deploy: deploy the Counter and Load contracts and save their addresses.

The artifacts are the JSON files written by the contract toolchain
(Truffle's build/contracts/*.json or Foundry's out/*.sol/*.json). The
deployed addresses are stored as COUNTER and LOAD in the .env file read by
`dtp`.
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import dotenv_values, set_key

from .config import DEFAULT_ENV_FILE
from .helper import ConfigurationError, DtpError, SeedKey, SubmissionError
from .node import Node


def read_artifact(path):
    try:
        with open(path) as f:
            artifact = json.load(f)
        abi = artifact["abi"]
        bytecode = artifact["bytecode"]
    except (OSError, ValueError, KeyError) as e:
        raise ConfigurationError("{} is not a compiled contract artifact: {}".format(path, e))
    # truffle stores the bytecode as a string, foundry under bytecode.object
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object", "")
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode
    if len(bytecode) <= 2:
        raise ConfigurationError("{} has no bytecode to deploy".format(path))
    return abi, bytecode


async def deploy_contract(node, deployer, abi, bytecode, nonce, gas_price, chain_id):
    tx = await node.build_deployment(abi, bytecode, deployer.address, nonce, gas_price, chain_id)
    signed = deployer.sign_transaction(tx)
    tx_hash = await node.send_raw_transaction(signed.raw_transaction)
    receipt = await node.wait_for_receipt(tx_hash)
    if receipt["status"] != 1:
        raise SubmissionError("deployment {} reverted".format(tx_hash))
    print("Contract deployed at address: {} and block: {}"
          .format(receipt["contractAddress"], receipt["blockNumber"]))
    print("Gas used:", receipt["gasUsed"])
    return receipt["contractAddress"]


async def deploy_all(rpc_url, seed_key, artifacts, connect=Node.connect):
    """Deploy every (name, artifact path) pair in order, return name -> address."""
    node = None
    try:
        contracts = [(name, read_artifact(path)) for name, path in artifacts]
        node = await connect(rpc_url)
        chain_id = await node.chain_id()
        gas_price = await node.gas_price()
        addresses = {}
        with seed_key as deployer:
            nonce = await node.get_nonce(deployer.address)
            for name, (abi, bytecode) in contracts:
                print("\nDeploying {}...".format(name))
                addresses[name] = await deploy_contract(
                    node, deployer, abi, bytecode, nonce, gas_price, chain_id)
                nonce += 1
        return addresses
    finally:
        seed_key.clear()
        if node is not None:
            await node.close()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="dtp-deploy", description="Deploy the Counter and Load contracts used by dtp.")
    parser.add_argument("-k", "--initial-funded-account-private-key",
                        help="private key of the deploying account (default: $FUNDER_PRIVATE_KEY)")
    parser.add_argument("-r", "--rpc-url", help="node JSON-RPC endpoint (default: $RPC_URL)")
    parser.add_argument("--counter-artifact", required=True, help="compiled Counter JSON")
    parser.add_argument("--load-artifact", required=True, help="compiled Load JSON")
    parser.add_argument("--env-file", default=DEFAULT_ENV_FILE,
                        help="file the COUNTER and LOAD addresses are written to")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    env = {k: v for k, v in dotenv_values(args.env_file).items() if v}
    env.update(os.environ)

    try:
        rpc_url = args.rpc_url or env.get("RPC_URL")
        if not rpc_url:
            raise ConfigurationError("missing RPC URL: pass -r/--rpc-url or set RPC_URL")
        seed_key = SeedKey(args.initial_funded_account_private_key
                           or env.get("FUNDER_PRIVATE_KEY", ""))
        addresses = asyncio.run(deploy_all(
            rpc_url, seed_key,
            [("COUNTER", args.counter_artifact), ("LOAD", args.load_artifact)]))
    except DtpError as e:
        sys.exit("Error: {}".format(e))

    # set_key needs an existing file
    open(args.env_file, "a").close()
    for name, address in addresses.items():
        set_key(args.env_file, name, address)
    print("\nWrote {} to {}".format(", ".join(addresses), args.env_file))
    return 0


if __name__ == "__main__":
    sys.exit(main())
