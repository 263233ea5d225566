# arbbot/submitter.py
"""
Trade Submission
Sends a detected opportunity to the arbitrage contract and reports a
transaction id, or raises an error classified as transient or permanent
"""

import abc
import itertools
import logging
from decimal import ROUND_FLOOR, Decimal
from typing import Dict, Optional

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from arbbot.config import CHAIN_ID, GAS_LIMIT_ARBITRAGE
from arbbot.detector import Opportunity

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class ExecutionError(Exception):
    """Submission failed"""


class TransientExecutionError(ExecutionError):
    """Network, timeout or venue-busy failure; worth retrying"""


class PermanentExecutionError(ExecutionError):
    """Rejected or reverted; retrying will not help"""


class UnconfirmedTransactionError(PermanentExecutionError):
    """Broadcast, but never confirmed; a retry could execute the trade twice"""


# Node replies that mean "try again shortly"
TRANSIENT_NODE_ERRORS = (
    "nonce too low",
    "replacement transaction underpriced",
    "transaction underpriced",
    "too many requests",
    "rate limit",
    "timeout",
)


def classify_error(error: Exception) -> ExecutionError:
    """Map a web3/requests failure onto the retry policy"""
    if isinstance(error, ExecutionError):
        return error
    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return TransientExecutionError(f"Node unreachable: {error}")
    if isinstance(error, (TimeExhausted, TimeoutError, ConnectionError)):
        return TransientExecutionError(str(error))
    if isinstance(error, ContractLogicError):
        return PermanentExecutionError(f"Contract rejected trade: {error}")
    message = str(error).lower()
    if any(marker in message for marker in TRANSIENT_NODE_ERRORS):
        return TransientExecutionError(str(error))
    return PermanentExecutionError(str(error))


# =============================================================================
# ABI DEFINITIONS
# =============================================================================

ARBITRAGE_ABI = [
    {
        "name": "executeArbitrage",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "amount", "type": "uint256"},
            {"name": "minProfit", "type": "uint256"},
            {"name": "buyVenue", "type": "address"},
            {"name": "sellVenue", "type": "address"},
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
        ],
        "outputs": [],
    },
]


# =============================================================================
# SUBMITTERS
# =============================================================================

class ExecutionSubmitter(abc.ABC):
    @abc.abstractmethod
    def submit(self, opportunity: Opportunity) -> str:
        """Return a transaction id, or raise ExecutionError"""
        raise NotImplementedError


class DryRunSubmitter(ExecutionSubmitter):
    """Logs the trade it would have sent"""

    def __init__(self):
        self._counter = itertools.count(1)

    def submit(self, opportunity: Opportunity) -> str:
        tx_id = f"DRYRUN-{next(self._counter)}"
        logger.info(
            f"[{tx_id}] DRY RUN - would execute {opportunity.amount} {opportunity.label} "
            f"({opportunity.buy_venue} -> {opportunity.sell_venue})"
        )
        return tx_id


class Web3Submitter(ExecutionSubmitter):
    """
    Calls executeArbitrage on the configured contract

    venue_addresses maps venue name -> the address the contract routes to.
    With simulate_only the call goes through eth_call and nothing is sent.
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        public_address: str,
        private_key: Optional[str],
        venue_addresses: Dict[str, str],
        chain_id: int = CHAIN_ID,
        gas_limit: int = GAS_LIMIT_ARBITRAGE,
        receipt_timeout: float = 60,
        receipt_polls: int = 3,
        simulate_only: bool = False,
    ):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=ARBITRAGE_ABI,
        )
        self.address = Web3.to_checksum_address(public_address)
        self.account = w3.eth.account.from_key(private_key) if private_key else None
        self.venue_addresses = dict(venue_addresses)
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self.receipt_polls = receipt_polls
        self.simulate_only = simulate_only

        if not simulate_only and self.account is None:
            raise RuntimeError("PRIVATE_KEY required for live execution")

    def _venue_address(self, venue: str) -> str:
        address = self.venue_addresses.get(venue)
        if not address:
            raise PermanentExecutionError(f"No contract address configured for venue {venue}")
        return Web3.to_checksum_address(address)

    def _build_call(self, opportunity: Opportunity):
        min_profit = int(
            Decimal(opportunity.min_profit_absolute).to_integral_value(rounding=ROUND_FLOOR)
        )
        return self.contract.functions.executeArbitrage(
            opportunity.amount,
            min_profit,
            self._venue_address(opportunity.buy_venue),
            self._venue_address(opportunity.sell_venue),
            Web3.to_checksum_address(opportunity.token_a),
            Web3.to_checksum_address(opportunity.token_b),
        )

    def submit(self, opportunity: Opportunity) -> str:
        call = self._build_call(opportunity)

        try:
            if self.simulate_only:
                call.call({"from": self.address})
                logger.info(f"{opportunity.label}: simulation passed")
                return "SIMULATED"

            tx = call.build_transaction({
                "from": self.address,
                "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
                "gas": self.gas_limit,
                "gasPrice": self.w3.eth.gas_price,
                "chainId": self.chain_id,
            })
            signed = self.account.sign_transaction(tx)
        except Exception as e:
            raise classify_error(e) from e

        try:
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except (requests.exceptions.ReadTimeout, TimeoutError) as e:
            # The node may have accepted it before the reply was lost
            raise UnconfirmedTransactionError(f"Broadcast outcome unknown: {e}") from e
        except Exception as e:
            raise classify_error(e) from e

        tx_id = tx_hash.hex()
        logger.info(f"{opportunity.label}: tx sent {tx_id}")

        receipt = self._wait_for_receipt(tx_hash, opportunity.label)
        if receipt.status != 1:
            raise PermanentExecutionError(f"Transaction {tx_id} reverted")

        return tx_id

    def _wait_for_receipt(self, tx_hash, label: str):
        """Polls the already-broadcast hash; never sends again"""
        for poll in range(1, self.receipt_polls + 1):
            try:
                return self.w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.receipt_timeout
                )
            except TimeExhausted:
                logger.warning(
                    f"{label}: no receipt for {tx_hash.hex()} yet "
                    f"(poll {poll}/{self.receipt_polls})"
                )
            except Exception as e:
                raise UnconfirmedTransactionError(
                    f"Lost track of {tx_hash.hex()}: {e}"
                ) from e

        raise UnconfirmedTransactionError(
            f"Transaction {tx_hash.hex()} unconfirmed after "
            f"{self.receipt_polls * self.receipt_timeout:.0f}s, not resubmitting"
        )
