"""
Account integrity query.

One Multicall3 ``aggregate3`` reads everything needed to tell whether an
account and its Roles and Delay modules are deployed and configured as the
setup batch leaves them. The result is interpreted by a fixed precedence of
checks; the first failing check decides the status.
"""
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from eth_utils import to_checksum_address

from ._rate_limited_log import rate_limited_log
from .abi import BytesLike, decode, encode_call, normalize_address, selector
from .addresses import AddressDeriver
from .config import Deployments
from .constants import ADDRESS_ONE, ADDRESS_TWO, INTEGRITY_CALL_COUNT, SPENDING_ALLOWANCE_KEY
from .models import AccountIntegrityStatus, AccountQueryResult, AllowanceInfo, TransactionRequest

logger = logging.getLogger(__name__)

ReadCallback = Callable[[TransactionRequest], BytesLike]
CallResult = Tuple[bool, bytes]

ALLOWANCE_TYPES = ["uint128", "uint128", "uint64", "uint128", "uint64"]


def accrued_balance(balance: int, max_refill: int, refill: int, period: int,
                    timestamp: int, block_timestamp: int) -> int:
    """
    Allowance balance after replenishment up to ``block_timestamp``.

    Whole elapsed periods each add ``refill``; the result is capped at
    ``max_refill``. Before the first period elapses the balance is unchanged.
    """
    if period == 0 or block_timestamp < timestamp + period:
        return balance
    elapsed = (block_timestamp - timestamp) // period
    return min(balance + refill * elapsed, max_refill)


def next_refill_at(refill: int, period: int, timestamp: int, block_timestamp: int) -> Optional[int]:
    """Timestamp of the next replenishment, or None when the allowance never refills."""
    if period == 0 or refill == 0:
        return None
    elapsed = (block_timestamp - timestamp) // period
    return timestamp + (elapsed + 1) * period


def zero_allowance() -> AllowanceInfo:
    return AllowanceInfo(balance=0, refill=0, max_refill=0, period=0, next_refill=None)


class IntegrityEvaluator:
    """
    Builds the integrity aggregate and evaluates its result.
    """

    def __init__(self, deployments: Deployments, deriver: Optional[AddressDeriver] = None):
        self.deployments = deployments
        self.deriver = deriver or AddressDeriver(deployments)

    def build_calls(self, account: str) -> List[Tuple[str, bool, bytes]]:
        """The ten ``(target, allowFailure, callData)`` reads, in evaluation order."""
        account = normalize_address(account)
        delay = self.deriver.predict_delay(account)
        roles = self.deriver.predict_roles(account)
        multicall = self.deployments.multicall

        return [
            (account, True, selector("getOwners()")),
            (account, True, selector("getThreshold()")),
            (account, True, encode_call("getModulesPaginated", ["address", "uint256"], [ADDRESS_ONE, 10])),
            (roles, True, selector("owner()")),
            (roles, True, encode_call("allowances", ["bytes32"], [SPENDING_ALLOWANCE_KEY])),
            (delay, True, selector("owner()")),
            (delay, True, selector("txCooldown()")),
            (delay, True, selector("txNonce()")),
            (delay, True, selector("queueNonce()")),
            (multicall, False, selector("getCurrentBlockTimestamp()")),
        ]

    def build_query(self, account: str) -> TransactionRequest:
        """
        Read request for the account's integrity aggregate.

        Pass it to ``eth_call`` and hand the raw return data to :meth:`evaluate`.
        """
        calls = self.build_calls(account)
        return TransactionRequest(
            to=self.deployments.multicall,
            value=0,
            data=encode_call("aggregate3", ["(address,bool,bytes)[]"], [calls]),
        )

    def evaluate(self, account: str, cooldown: int, raw_result: BytesLike) -> AccountQueryResult:
        """
        Interpret the raw ``aggregate3`` return data.

        Args:
            account: Account the query was built for
            cooldown: Minimum Delay cooldown the account must enforce
            raw_result: Return data of the aggregate

        Returns:
            Status and the accrued allowance. Malformed data yields
            ``UNEXPECTED_ERROR`` with a zero allowance instead of raising.

        Raises:
            ConfigurationError: If the bouncer bytecode is not configured
        """
        account = normalize_address(account)
        delay = self.deriver.predict_delay(account)
        roles = self.deriver.predict_roles(account)
        bouncer = self.deriver.predict_bouncer(account)

        try:
            (results,) = decode(["(bool,bytes)[]"], raw_result)
            if len(results) != INTEGRITY_CALL_COUNT:
                rate_limited_log(
                    f"Integrity aggregate for {account} returned {len(results)} results",
                    logger_instance=logger,
                )
                return AccountQueryResult(status=AccountIntegrityStatus.UNEXPECTED_ERROR, allowance=zero_allowance())

            allowance = self._evaluate_allowance(results[4], results[9])
            status = self._evaluate_status(account, cooldown, delay, roles, bouncer, results)
        except Exception as e:
            rate_limited_log(f"Could not evaluate integrity of {account}: {e}", logger_instance=logger)
            return AccountQueryResult(status=AccountIntegrityStatus.UNEXPECTED_ERROR, allowance=zero_allowance())

        logger.debug(f"Integrity of {account}: {status.value}")
        return AccountQueryResult(status=status, allowance=allowance)

    def query(self, account: str, cooldown: int, eth_call: ReadCallback) -> AccountQueryResult:
        """
        Build, read and evaluate in one go.

        Errors raised by ``eth_call`` propagate unchanged.
        """
        request = self.build_query(account)
        return self.evaluate(account, cooldown, eth_call(request))

    @staticmethod
    def _read_ok(result: CallResult) -> bool:
        # A call to an address without code succeeds with empty return data
        success, data = result
        return bool(success) and len(data) > 0

    def _evaluate_allowance(self, allowance_result: CallResult, timestamp_result: CallResult) -> AllowanceInfo:
        if not self._read_ok(allowance_result):
            return zero_allowance()

        refill, max_refill, period, balance, timestamp = decode(ALLOWANCE_TYPES, allowance_result[1])
        (block_timestamp,) = decode(["uint256"], timestamp_result[1])

        return AllowanceInfo(
            balance=accrued_balance(balance, max_refill, refill, period, timestamp, block_timestamp),
            refill=refill,
            max_refill=max_refill,
            period=period,
            next_refill=next_refill_at(refill, period, timestamp, block_timestamp),
        )

    def _evaluate_status(self, account: str, cooldown: int, delay: str, roles: str, bouncer: str,
                         results: Sequence[CallResult]) -> AccountIntegrityStatus:
        (owners_r, threshold_r, modules_r, roles_owner_r, allowance_r,
         delay_owner_r, cooldown_r, tx_nonce_r, queue_nonce_r, _) = results

        if not all(self._read_ok(r) for r in (owners_r, threshold_r, modules_r)):
            return AccountIntegrityStatus.SAFE_NOT_DEPLOYED

        (owners,) = decode(["address[]"], owners_r[1])
        (threshold,) = decode(["uint256"], threshold_r[1])
        modules, _next = decode(["address[]", "address"], modules_r[1])
        owners = [to_checksum_address(o) for o in owners]
        modules = [to_checksum_address(m) for m in modules]
        if owners != [ADDRESS_TWO] or threshold != 1:
            return AccountIntegrityStatus.SAFE_MISCONFIGURED
        if len(modules) != 2 or set(modules) != {delay, roles}:
            return AccountIntegrityStatus.SAFE_MISCONFIGURED

        if not (self._read_ok(roles_owner_r) and self._read_ok(allowance_r)):
            return AccountIntegrityStatus.ROLES_NOT_DEPLOYED

        (roles_owner,) = decode(["address"], roles_owner_r[1])
        if to_checksum_address(roles_owner) != bouncer:
            return AccountIntegrityStatus.ROLES_MISCONFIGURED

        if not all(self._read_ok(r) for r in (delay_owner_r, cooldown_r, tx_nonce_r, queue_nonce_r)):
            return AccountIntegrityStatus.DELAY_NOT_DEPLOYED

        (delay_owner,) = decode(["address"], delay_owner_r[1])
        (tx_cooldown,) = decode(["uint256"], cooldown_r[1])
        if to_checksum_address(delay_owner) != account or tx_cooldown < cooldown:
            return AccountIntegrityStatus.DELAY_MISCONFIGURED

        (tx_nonce,) = decode(["uint256"], tx_nonce_r[1])
        (queue_nonce,) = decode(["uint256"], queue_nonce_r[1])
        if tx_nonce != queue_nonce:
            return AccountIntegrityStatus.DELAY_QUEUE_NOT_EMPTY

        return AccountIntegrityStatus.OK
