"""Result types passed between services and the orchestrator."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class ClaimStatus(Enum):
    """Classification of a faucet claim attempt."""

    SUCCESS = "success"
    COOLDOWN = "cooldown"
    ERROR = "error"


@dataclass
class ClaimOutcome:
    """Outcome of a single faucet claim.

    Attributes:
        address: Wallet the claim was made for.
        status: :class:`ClaimStatus` tag.
        reason: Human-readable description.
        status_code: HTTP status from the faucet, if a response arrived.
    """

    address: str
    status: ClaimStatus
    reason: str
    status_code: Optional[int] = None

    @classmethod
    def success(cls, address: str, status_code: Optional[int] = None) -> "ClaimOutcome":
        return cls(address, ClaimStatus.SUCCESS, "Success", status_code)

    @classmethod
    def cooldown(cls, address: str, reason: str, status_code: Optional[int] = None) -> "ClaimOutcome":
        return cls(address, ClaimStatus.COOLDOWN, reason, status_code)

    @classmethod
    def error(cls, address: str, reason: str, status_code: Optional[int] = None) -> "ClaimOutcome":
        return cls(address, ClaimStatus.ERROR, reason, status_code)


@dataclass
class BridgeQuote:
    """Relay fee estimate, in wei."""

    gas_fee: int
    relayer_fee: int

    @property
    def total_fee(self) -> int:
        return self.gas_fee + self.relayer_fee


@dataclass
class BridgeResult:
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class WithdrawalStatus(Enum):
    """Exchange withdrawal outcome classes."""

    SUCCESS = "success"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass
class WithdrawalResult:
    """Result of an exchange withdrawal request.

    Attributes:
        success: Whether the exchange accepted the request.
        status: :class:`WithdrawalStatus` classification.
        network: Exchange network name the funds go to (on success).
        amount: Requested amount.
        error: Exchange or local error message.
    """

    success: bool
    status: WithdrawalStatus
    network: Optional[str] = None
    amount: Optional[Decimal] = None
    error: Optional[str] = None


@dataclass
class TxResult:
    """Outcome of an on-chain action (vault deposit, claim, ...)."""

    action: str
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    """Per-run bookkeeping of wallet outcomes.

    Each address lives in at most one of the four mappings: recording a new
    event for an address replaces whatever was recorded before, so the
    tallies reflect each wallet's final state.
    """

    successful: Dict[str, str] = field(default_factory=dict)
    cooldown: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)

    def _forget(self, address: str) -> None:
        for bucket in (self.successful, self.cooldown, self.errors, self.skipped):
            bucket.pop(address, None)

    def record(self, outcome: ClaimOutcome) -> None:
        self._forget(outcome.address)
        if outcome.status is ClaimStatus.SUCCESS:
            self.successful[outcome.address] = outcome.reason
        elif outcome.status is ClaimStatus.COOLDOWN:
            self.cooldown[outcome.address] = outcome.reason
        else:
            self.errors[outcome.address] = outcome.reason

    def record_skip(self, address: str, reason: str) -> None:
        self._forget(address)
        self.skipped[address] = reason

    def status_of(self, address: str) -> Optional[str]:
        """Return the bucket name holding *address*, if any."""
        for name in ("successful", "cooldown", "errors", "skipped"):
            if address in getattr(self, name):
                return name
        return None
