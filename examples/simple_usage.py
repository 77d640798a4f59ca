#!/usr/bin/env python3
"""
Simple example of using the Monad toolkit.
"""
import logging
import os

from monad_toolkit import MonadClient, Toolkit, ToolkitSettings
from monad_toolkit.units import NATIVE_DECIMALS, format_units


def main():
    """
    Demonstrate basic usage of the MonadClient.

    This example shows how to:
    1. Build a client from environment settings
    2. Read a native balance and the latest block
    3. Run a named operation through the Toolkit
    """
    logging.basicConfig(level=logging.INFO)

    settings = ToolkitSettings.from_env()
    client = MonadClient.from_settings(settings)

    address = os.environ.get("ADDRESS")
    if not address:
        if not settings.private_key:
            print("ERROR: set ADDRESS or PRIVATE_KEY")
            return
        address = client.address

    balance = client.get_native_balance(address)
    print(f"Balance: {format_units(balance, NATIVE_DECIMALS)} MON")

    block = client.get_latest_block()
    print(f"Latest block: {block.number}")

    toolkit = Toolkit(client)
    result = toolkit.invoke("get-gas-price")
    print(result.text)

    if settings.private_key and os.environ.get("SEND_TO"):
        result = toolkit.invoke("send-mon", {"to": os.environ["SEND_TO"], "amount": "0.001"})
        print(result.text)


if __name__ == "__main__":
    main()
