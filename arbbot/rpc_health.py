# arbbot/rpc_health.py
"""
RPC Health Monitoring
Checks RPC connection, latency, and block freshness before the bot starts
"""

import time
from decimal import Decimal

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

MAX_RPC_LATENCY = 2.0          # seconds
MAX_BLOCK_AGE = 60             # seconds since the latest block
RPC_REQUEST_TIMEOUT = 10       # seconds, per HTTP request


def connect(rpc_url: str, timeout: float = RPC_REQUEST_TIMEOUT) -> Web3:
    """HTTP web3 connection with the POA extra-data middleware"""
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


class RPCHealth:
    """
    Monitor RPC health
    """

    def __init__(self, w3: Web3, max_latency: float = MAX_RPC_LATENCY, max_block_age: float = MAX_BLOCK_AGE):
        self.w3 = w3
        self.max_latency = max_latency
        self.max_block_age = max_block_age

    def check(self) -> tuple:
        """
        Check RPC health
        Returns (is_healthy: bool, status_message: str)
        """
        try:
            if not self.w3.is_connected():
                return False, "RPC not connected"

            start = time.time()
            block = self.w3.eth.get_block("latest")
            latency = time.time() - start

            age = time.time() - block["timestamp"]

            if latency > self.max_latency:
                return False, f"High latency {latency:.2f}s"

            if age > self.max_block_age:
                return False, f"Latest block is {age:.0f}s old"

            return True, f"OK (latency={latency:.2f}s, block={block['number']})"

        except Exception as e:
            return False, str(e)


def check_gas_balance(w3: Web3, address: str, minimum: Decimal) -> Decimal:
    """
    Native token balance of the trading wallet, in whole tokens
    Raises RuntimeError when there is not enough to pay for gas
    """
    balance_wei = w3.eth.get_balance(Web3.to_checksum_address(address))
    balance = Decimal(balance_wei) / Decimal(10**18)
    if balance < minimum:
        raise RuntimeError(f"Gas balance {balance:.4f} below required {minimum}")
    return balance
