#!/usr/bin/env python3
"""
Example of querying an account with the packaged network configuration.
"""
import os
import sys

from accountkit_sdk import AccountIntegrityStatus, AccountKitClient, NetworkConfig


def main():
    """
    Show the predicted topology of an account and evaluate its integrity.

    Environment:
        ACCOUNT: account Safe address (required)
        NETWORK: network name, ``gnosis`` by default
        BOUNCER_BYTECODE: bouncer creation code, needed to predict the bouncer
        COOLDOWN: expected Delay cooldown in seconds
    """
    account = os.environ.get("ACCOUNT")
    network = os.environ.get("NETWORK", "gnosis")
    bouncer_bytecode = os.environ.get("BOUNCER_BYTECODE")
    cooldown = int(os.environ.get("COOLDOWN", "180"))

    if not account or not bouncer_bytecode:
        print("ERROR: ACCOUNT and BOUNCER_BYTECODE environment variables are required")
        sys.exit(1)

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")
    print()

    client = AccountKitClient.from_network(network, bouncer_bytecode=bouncer_bytecode)
    print(f"Connected to {network} (chain {client.chain_id})")

    topology = client.kit.topology(account)
    print(f"Delay:   {topology.delay}")
    print(f"Roles:   {topology.roles}")
    print(f"Bouncer: {topology.bouncer}")

    result = client.query_account(account, cooldown)
    print(f"\nStatus: {result.status.value}")
    if result.status == AccountIntegrityStatus.OK:
        allowance = result.allowance
        print(f"Balance: {allowance.balance} / {allowance.max_refill}")
        print(f"Next refill at: {allowance.next_refill}")
    else:
        print(f"Owners: {client.get_account_owners(account)}")


if __name__ == "__main__":
    main()
