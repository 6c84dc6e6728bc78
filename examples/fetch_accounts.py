import asyncio
import os

import batchfetch
from batchfetch.utils.logging import setup_logging

ACCOUNTS = [
    "tKeYE4wtowRb8yRroZShTipE18YVnqwXjsSAoNsFU6g",
    "JDWYBjxEvEWt8yPhdb6BhNerfXaiXogRgUX2yW2AHUVb",
]


async def main():
    setup_logging()
    rpc = batchfetch.JsonRpcBackend(
        os.getenv("RPC_ENDPOINT", "https://api.devnet.solana.com"),
        default_params={"encoding": "jsonParsed", "commitment": "confirmed"},
    )
    batchfetch.set_config(time_window=100)
    # both lookups go out in a single getMultipleAccounts call
    accounts = await asyncio.gather(*(batchfetch.fetch(rpc, account) for account in ACCOUNTS))
    for address, account in zip(ACCOUNTS, accounts):
        print(address, account)
    batchfetch.teardown()


if __name__ == "__main__":
    asyncio.run(main())
