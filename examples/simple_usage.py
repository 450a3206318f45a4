#!/usr/bin/env python3
"""
Create and configure an account, then queue an owner action through Delay.
"""
import os
import logging

from accountkit_sdk import (
    AccountKitClient,
    AllowanceConfig,
    DelayConfig,
    LocalSigner,
    SetupConfig,
    TransactionRequest,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    # The relayer pays gas, the owner signs account operations
    relayer_key = os.environ.get("RELAYER_PRIVATE_KEY")
    owner_key = os.environ.get("OWNER_PRIVATE_KEY")
    network = os.environ.get("NETWORK", "chiado")
    if not relayer_key or not owner_key:
        print("ERROR: RELAYER_PRIVATE_KEY and OWNER_PRIVATE_KEY environment variables are required")
        return

    owner = LocalSigner(owner_key)
    client = AccountKitClient.from_network(
        network,
        priv_key=relayer_key,
        logger=logger,
        safe_proxy_creation_code=os.environ["SAFE_PROXY_CREATION_CODE"],
        bouncer_bytecode=os.environ["BOUNCER_BYTECODE"],
    )
    kit = client.kit
    chain_id = client.chain_id

    # 1. Deploy the account Safe at its predicted address
    account = kit.predict_account_address(owner.address)
    print(f"Account for {owner.address}: {account}")
    receipt = client.relay(kit.populate_account_creation(owner.address))
    print(f"Account created in block {receipt.block_number}")

    # 2. Install Delay, Roles and the allowance in one owner-signed batch
    config = SetupConfig(
        spender=os.environ.get("SPENDER", owner.address),
        receiver=os.environ.get("RECEIVER", owner.address),
        token=os.environ["TOKEN"],
        allowance=AllowanceConfig(refill=100 * 10**18, period=86400),
        delay=DelayConfig(cooldown=180, expiration=1800),
    )
    nonce = client.get_safe_nonce(account)
    setup = kit.populate_account_setup(account, owner.address, chain_id, nonce, config, owner)
    receipt = client.relay(setup)
    print(f"Account configured, status {receipt.status}")

    # 3. Owner actions now go through the Delay queue
    action = TransactionRequest(to=account, data="0x")
    enqueue = kit.populate_execute_enqueue(account, chain_id, action, owner)
    client.relay(enqueue)
    print("Action queued; dispatch it once the cooldown has passed:")
    print(f"  to:   {kit.populate_execute_dispatch(account, action).to}")
    print(f"  data: {kit.populate_execute_dispatch(account, action).data_hex}")


if __name__ == "__main__":
    main()
