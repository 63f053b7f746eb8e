#!/usr/bin/env python3
"""
Simple example of using the Klever SDK.
"""
import logging
import os

from klever_sdk import (
    KleverSDKError, LedgerProvider, LocalSigner, ProgressStatus, TransactionBuilder, parse_receipt
)


def main():
    """
    Demonstrate a KLV transfer on testnet.

    This example shows how to:
    1. Connect a provider and read the sender's account
    2. Build and sign a transfer offline
    3. Broadcast it and wait for it to be mined
    4. Parse the transfer receipt
    """
    logging.basicConfig(level=logging.INFO)

    # Read configuration from environment
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")
    RECEIVER = os.environ.get("RECEIVER_ADDRESS")
    AMOUNT = int(os.environ.get("AMOUNT", "1000000"))  # 1 KLV in base units

    if not PRIVATE_KEY:
        print("ERROR: PRIVATE_KEY environment variable is required")
        return

    if not RECEIVER:
        print("ERROR: RECEIVER_ADDRESS environment variable is required")
        return

    signer = LocalSigner(PRIVATE_KEY)

    with LedgerProvider("testnet") as provider:
        provider.on("transaction", lambda tx_hash: print(f"Broadcast: {tx_hash}"))

        try:
            account = provider.get_account(signer.address)
            print(f"Sender: {account.address}")
            print(f"Balance: {account.balance_of('KLV')} (nonce {account.nonce})")

            tx = (TransactionBuilder(provider)
                  .sender(signer.address)
                  .nonce(account.nonce)
                  .transfer(RECEIVER, AMOUNT)
                  .build_proto())
            tx.sign(signer)

            tx_hash = provider.broadcast_transaction(tx)
            print(f"Explorer: {provider.get_transaction_url(tx_hash)}")

            def on_progress(progress):
                if progress.status == ProgressStatus.PENDING:
                    print(f"Waiting... attempt {progress.attempt}/{progress.max_attempts}")

            mined = provider.wait_for_transaction(tx_hash, on_progress=on_progress)
            if mined is None:
                print("Transaction was not confirmed in time")
                return
            if mined.is_failed:
                print(f"Transaction failed: {mined.result_code}")
                return

            transfer = parse_receipt.transfer(mined)
            print(f"Transferred {transfer.amount} {transfer.kda} from {transfer.sender} to {transfer.receiver}")

        except KleverSDKError as e:
            print(f"Error: {e}")


if __name__ == "__main__":
    main()
