"""Decoded Stellar ledger types.

Operations, results and transactions as they arrive from the ledger source,
after XDR decoding. Every operation body is its own frozen dataclass so the
transformer can dispatch on the body kind and only ever see the payload that
belongs to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Union

from hexbytes import HexBytes

from stellar_etl.strkey_cache import (
    get_account_address,
    get_account_key,
    get_hash_x_address,
    get_pre_auth_tx_address,
)

# ============================================================================
# ENUMS AND CONSTANTS
# ============================================================================

KEY_LENGTH = 32


class OperationType(IntEnum):
    """Operation kinds, numbered as on the wire."""

    CREATE_ACCOUNT = 0
    PAYMENT = 1
    PATH_PAYMENT_STRICT_RECEIVE = 2
    MANAGE_SELL_OFFER = 3
    CREATE_PASSIVE_SELL_OFFER = 4
    SET_OPTIONS = 5
    CHANGE_TRUST = 6
    ALLOW_TRUST = 7
    ACCOUNT_MERGE = 8
    INFLATION = 9
    MANAGE_DATA = 10
    BUMP_SEQUENCE = 11
    MANAGE_BUY_OFFER = 12
    PATH_PAYMENT_STRICT_SEND = 13


class AssetType(IntEnum):
    NATIVE = 0
    CREDIT_ALPHANUM4 = 1
    CREDIT_ALPHANUM12 = 2


ASSET_TYPE_NAMES = {
    AssetType.NATIVE: "native",
    AssetType.CREDIT_ALPHANUM4: "credit_alphanum4",
    AssetType.CREDIT_ALPHANUM12: "credit_alphanum12",
}


class SignerKeyType(IntEnum):
    ED25519 = 0
    PRE_AUTH_TX = 1
    HASH_X = 2


class OperationResultCode(IntEnum):
    """Outer per-operation result codes. Only OP_INNER carries an inner result."""

    OP_INNER = 0
    OP_BAD_AUTH = -1
    OP_NO_ACCOUNT = -2
    OP_NOT_SUPPORTED = -3
    OP_TOO_MANY_SUBENTRIES = -4
    OP_EXCEEDED_WORK_LIMIT = -5
    OP_TOO_MANY_SPONSORING = -6


class TransactionResultCode(IntEnum):
    TX_FEE_BUMP_INNER_SUCCESS = 1
    TX_SUCCESS = 0
    TX_FAILED = -1
    TX_TOO_EARLY = -2
    TX_TOO_LATE = -3
    TX_MISSING_OPERATION = -4
    TX_BAD_SEQ = -5
    TX_BAD_AUTH = -6
    TX_INSUFFICIENT_BALANCE = -7
    TX_NO_ACCOUNT = -8
    TX_INSUFFICIENT_FEE = -9
    TX_BAD_AUTH_EXTRA = -10
    TX_INTERNAL_ERROR = -11


class PathPaymentStrictReceiveResultCode(IntEnum):
    SUCCESS = 0
    MALFORMED = -1
    UNDERFUNDED = -2
    SRC_NO_TRUST = -3
    SRC_NOT_AUTHORIZED = -4
    NO_DESTINATION = -5
    NO_TRUST = -6
    NOT_AUTHORIZED = -7
    LINE_FULL = -8
    NO_ISSUER = -9
    TOO_FEW_OFFERS = -10
    OFFER_CROSS_SELF = -11
    OVER_SENDMAX = -12


class PathPaymentStrictSendResultCode(IntEnum):
    SUCCESS = 0
    MALFORMED = -1
    UNDERFUNDED = -2
    SRC_NO_TRUST = -3
    SRC_NOT_AUTHORIZED = -4
    NO_DESTINATION = -5
    NO_TRUST = -6
    NOT_AUTHORIZED = -7
    LINE_FULL = -8
    NO_ISSUER = -9
    TOO_FEW_OFFERS = -10
    OFFER_CROSS_SELF = -11
    UNDER_DESTMIN = -12


# ============================================================================
# ACCOUNTS, ASSETS, KEYS
# ============================================================================


def _as_key(value: bytes | str, name: str) -> HexBytes:
    key = HexBytes(value)
    if len(key) != KEY_LENGTH:
        msg = f"{name} must be {KEY_LENGTH} bytes, got {len(key)}"
        raise ValueError(msg)
    return key


@dataclass(frozen=True)
class AccountId:
    """A plain ed25519 account."""

    key: HexBytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _as_key(self.key, "Account key"))

    @classmethod
    def from_address(cls, address: str) -> AccountId:
        return cls(HexBytes(get_account_key(address)))

    @property
    def address(self) -> str:
        return get_account_address(self.key)


@dataclass(frozen=True)
class MuxedAccount:
    """An ed25519 account, optionally multiplexed with a 64-bit id.

    Multiplexed accounts render as their underlying G... address.
    """

    key: HexBytes
    id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _as_key(self.key, "Account key"))

    @classmethod
    def from_address(cls, address: str, muxed_id: int | None = None) -> MuxedAccount:
        return cls(HexBytes(get_account_key(address)), muxed_id)

    def to_account_id(self) -> AccountId:
        return AccountId(self.key)

    @property
    def address(self) -> str:
        return get_account_address(self.key)


@dataclass(frozen=True)
class Asset:
    """The native asset, or a (code, issuer) pair."""

    type: AssetType
    code: str | None = None
    issuer: AccountId | None = None

    def __post_init__(self) -> None:
        if self.type == AssetType.NATIVE:
            if self.code is not None or self.issuer is not None:
                msg = "Native asset cannot carry a code or issuer"
                raise ValueError(msg)
            return
        if not self.code or self.issuer is None:
            msg = f"{ASSET_TYPE_NAMES[self.type]} asset requires a code and an issuer"
            raise ValueError(msg)
        max_length = 4 if self.type == AssetType.CREDIT_ALPHANUM4 else 12
        if len(self.code) > max_length:
            msg = f"Asset code {self.code!r} is longer than {max_length} characters"
            raise ValueError(msg)

    @classmethod
    def native(cls) -> Asset:
        return cls(AssetType.NATIVE)

    @classmethod
    def credit(cls, code: str, issuer: AccountId) -> Asset:
        """Build a credit asset, choosing the alphanum width from the code length."""
        asset_type = AssetType.CREDIT_ALPHANUM4 if len(code) <= 4 else AssetType.CREDIT_ALPHANUM12
        return cls(asset_type, code, issuer)

    @property
    def is_native(self) -> bool:
        return self.type == AssetType.NATIVE


@dataclass(frozen=True)
class Price:
    """A rational price, numerator over denominator."""

    n: int
    d: int


@dataclass(frozen=True)
class SignerKey:
    type: SignerKeyType
    key: HexBytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _as_key(self.key, "Signer key"))

    @property
    def address(self) -> str:
        if self.type == SignerKeyType.ED25519:
            return get_account_address(self.key)
        if self.type == SignerKeyType.PRE_AUTH_TX:
            return get_pre_auth_tx_address(self.key)
        return get_hash_x_address(self.key)


@dataclass(frozen=True)
class Signer:
    key: SignerKey
    weight: int


# ============================================================================
# OPERATION BODIES
# ============================================================================


class _KnownOperationBody:
    """Common base for decoded bodies of a supported kind."""

    type: ClassVar[OperationType]

    @property
    def type_code(self) -> int:
        return int(self.type)


@dataclass(frozen=True)
class CreateAccountOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.CREATE_ACCOUNT

    destination: AccountId
    starting_balance: int


@dataclass(frozen=True)
class PaymentOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.PAYMENT

    destination: MuxedAccount
    asset: Asset
    amount: int


@dataclass(frozen=True)
class PathPaymentStrictReceiveOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.PATH_PAYMENT_STRICT_RECEIVE

    send_asset: Asset
    send_max: int
    destination: MuxedAccount
    dest_asset: Asset
    dest_amount: int
    path: tuple[Asset, ...] = ()


@dataclass(frozen=True)
class ManageSellOfferOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.MANAGE_SELL_OFFER

    selling: Asset
    buying: Asset
    amount: int
    price: Price
    offer_id: int = 0  # 0 creates a new offer


@dataclass(frozen=True)
class CreatePassiveSellOfferOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.CREATE_PASSIVE_SELL_OFFER

    selling: Asset
    buying: Asset
    amount: int
    price: Price


@dataclass(frozen=True)
class SetOptionsOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.SET_OPTIONS

    inflation_dest: AccountId | None = None
    clear_flags: int | None = None
    set_flags: int | None = None
    master_weight: int | None = None
    low_threshold: int | None = None
    med_threshold: int | None = None
    high_threshold: int | None = None
    home_domain: str | None = None
    signer: Signer | None = None


@dataclass(frozen=True)
class ChangeTrustOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.CHANGE_TRUST

    line: Asset
    limit: int


@dataclass(frozen=True)
class AllowTrustOp(_KnownOperationBody):
    """Authorize a trustline. The asset issuer is the operation source account."""

    type: ClassVar[OperationType] = OperationType.ALLOW_TRUST

    trustor: AccountId
    asset_code: str
    authorize: int


@dataclass(frozen=True)
class AccountMergeOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.ACCOUNT_MERGE

    destination: MuxedAccount


@dataclass(frozen=True)
class InflationOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.INFLATION


@dataclass(frozen=True)
class ManageDataOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.MANAGE_DATA

    data_name: str
    data_value: bytes | None = None  # None deletes the entry


@dataclass(frozen=True)
class BumpSequenceOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.BUMP_SEQUENCE

    bump_to: int


@dataclass(frozen=True)
class ManageBuyOfferOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.MANAGE_BUY_OFFER

    selling: Asset
    buying: Asset
    buy_amount: int
    price: Price
    offer_id: int = 0


@dataclass(frozen=True)
class PathPaymentStrictSendOp(_KnownOperationBody):
    type: ClassVar[OperationType] = OperationType.PATH_PAYMENT_STRICT_SEND

    send_asset: Asset
    send_amount: int
    destination: MuxedAccount
    dest_asset: Asset
    dest_min: int
    path: tuple[Asset, ...] = ()


@dataclass(frozen=True)
class RawOperationBody:
    """A body whose layout the decoder could not map to a supported kind."""

    type_code: int
    payload: HexBytes = field(default_factory=lambda: HexBytes(b""))


OperationBody = Union[
    CreateAccountOp,
    PaymentOp,
    PathPaymentStrictReceiveOp,
    ManageSellOfferOp,
    CreatePassiveSellOfferOp,
    SetOptionsOp,
    ChangeTrustOp,
    AllowTrustOp,
    AccountMergeOp,
    InflationOp,
    ManageDataOp,
    BumpSequenceOp,
    ManageBuyOfferOp,
    PathPaymentStrictSendOp,
    RawOperationBody,
]


@dataclass(frozen=True)
class Operation:
    """One line item of a transaction. A missing source inherits the transaction's."""

    body: OperationBody
    source_account: MuxedAccount | None = None


# ============================================================================
# OPERATION RESULTS
# ============================================================================


@dataclass(frozen=True)
class ClaimAtom:
    """An offer crossed while executing a path payment."""

    seller_id: AccountId
    offer_id: int
    asset_sold: Asset
    amount_sold: int
    asset_bought: Asset
    amount_bought: int


@dataclass(frozen=True)
class SimplePaymentResult:
    destination: AccountId
    asset: Asset
    amount: int


@dataclass(frozen=True)
class PathPaymentStrictReceiveResultSuccess:
    last: SimplePaymentResult
    offers: tuple[ClaimAtom, ...] = ()

    def send_amount(self) -> int:
        """Amount the source actually paid.

        Sums what the first crossed offer bought, across all offers buying the
        same asset; without crossed offers the payment went straight through.
        """
        if not self.offers:
            return self.last.amount
        source_asset = self.offers[0].asset_bought
        return sum(o.amount_bought for o in self.offers if o.asset_bought == source_asset)


@dataclass(frozen=True)
class PathPaymentStrictReceiveResult:
    code: PathPaymentStrictReceiveResultCode
    success: PathPaymentStrictReceiveResultSuccess | None = None

    def send_amount(self) -> int:
        """Amount the source paid; 0 when the payment did not succeed."""
        if self.code != PathPaymentStrictReceiveResultCode.SUCCESS or self.success is None:
            return 0
        return self.success.send_amount()


@dataclass(frozen=True)
class PathPaymentStrictSendResultSuccess:
    last: SimplePaymentResult
    offers: tuple[ClaimAtom, ...] = ()

    def dest_amount(self) -> int:
        return self.last.amount


@dataclass(frozen=True)
class PathPaymentStrictSendResult:
    code: PathPaymentStrictSendResultCode
    success: PathPaymentStrictSendResultSuccess | None = None

    def dest_amount(self) -> int:
        if self.code != PathPaymentStrictSendResultCode.SUCCESS or self.success is None:
            return 0
        return self.success.dest_amount()


@dataclass(frozen=True)
class GenericOperationResult:
    """Inner result of a kind whose payload the transformer never reads."""

    code: int


InnerOperationResult = Union[
    PathPaymentStrictReceiveResult,
    PathPaymentStrictSendResult,
    GenericOperationResult,
]


@dataclass(frozen=True)
class OperationResultTr:
    type: OperationType
    result: InnerOperationResult


@dataclass(frozen=True)
class OperationResult:
    code: OperationResultCode = OperationResultCode.OP_INNER
    tr: OperationResultTr | None = None


# ============================================================================
# TRANSACTIONS AND LEDGERS
# ============================================================================


@dataclass(frozen=True)
class TransactionEnvelope:
    source_account: MuxedAccount
    operations: tuple[Operation, ...]
    fee: int = 0
    seq_num: int = 0


@dataclass(frozen=True)
class TransactionResult:
    """Execution outcome. `results` is None when operations never ran."""

    code: TransactionResultCode = TransactionResultCode.TX_SUCCESS
    results: tuple[OperationResult, ...] | None = None
    fee_charged: int = 0


@dataclass(frozen=True)
class LedgerTransaction:
    index: int  # 1-based position within the ledger
    envelope: TransactionEnvelope
    result: TransactionResult
    hash: HexBytes = field(default_factory=lambda: HexBytes(bytes(KEY_LENGTH)))

    def __post_init__(self) -> None:
        object.__setattr__(self, "hash", HexBytes(self.hash))

    @property
    def source_account(self) -> MuxedAccount:
        return self.envelope.source_account

    @property
    def operations(self) -> tuple[Operation, ...]:
        return self.envelope.operations


@dataclass(frozen=True)
class LedgerHeader:
    ledger_seq: int
    close_time: int  # unix seconds
    ledger_version: int = 0


@dataclass(frozen=True)
class LedgerCloseMeta:
    header: LedgerHeader
    transactions: tuple[LedgerTransaction, ...] = ()

    @property
    def ledger_sequence(self) -> int:
        return self.header.ledger_seq
