"""Stellar operation transformer.

Turns one decoded operation, together with its transaction, into a flat
OperationOutput record: addresses as StrKey strings, amounts in units rather
than stroops, flags as names. Path payments also read the operation's
execution result, since the amount on one side of the payment is only known
after it ran.
"""

from __future__ import annotations

import base64
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable

from stellar_etl.exceptions import (
    MalformedOperation,
    MissingOperationResult,
    UnsupportedOperationKind,
)
from stellar_etl.ledger.types import (
    AccountMergeOp,
    AllowTrustOp,
    Asset,
    BumpSequenceOp,
    ChangeTrustOp,
    CreateAccountOp,
    CreatePassiveSellOfferOp,
    InflationOp,
    LedgerTransaction,
    ManageBuyOfferOp,
    ManageDataOp,
    ManageSellOfferOp,
    MuxedAccount,
    Operation,
    OperationBody,
    OperationType,
    PathPaymentStrictReceiveOp,
    PathPaymentStrictSendOp,
    PaymentOp,
    Price,
    RawOperationBody,
    SetOptionsOp,
)
from stellar_etl.transform.results import (
    get_path_payment_strict_receive_result,
    get_path_payment_strict_send_result,
)
from stellar_etl.transform.utils import (
    convert_price_to_float,
    convert_stroop_value_to_real,
    decode_flags,
    format_asset,
    format_stroop_amount,
)

# ============================================================================
# OUTPUT RECORDS
# ============================================================================


@dataclass(frozen=True)
class AssetOutput:
    asset_type: str
    asset_code: str | None = None
    asset_issuer: str | None = None

    @classmethod
    def from_asset(cls, asset: Asset) -> AssetOutput:
        return cls(*format_asset(asset))


@dataclass(frozen=True)
class PriceR:
    """Exact rational price."""

    numerator: int
    denominator: int


# Output keys that differ from the attribute name
_DETAIL_KEYS = {"from_": "from"}


@dataclass(frozen=True)
class Details:
    """Kind-specific fields. Only the fields of the matched kind are set."""

    account: str | None = None
    amount: float | None = None
    asset_code: str | None = None
    asset_issuer: str | None = None
    asset_type: str | None = None
    authorize: bool | None = None
    bump_to: str | None = None
    buying_asset_code: str | None = None
    buying_asset_issuer: str | None = None
    buying_asset_type: str | None = None
    clear_flags: list[int] | None = None
    clear_flags_string: list[str] | None = None
    destination_min: str | None = None
    from_: str | None = None
    funder: str | None = None
    high_threshold: int | None = None
    home_domain: str | None = None
    inflation_dest: str | None = None
    into: str | None = None
    limit: float | None = None
    low_threshold: int | None = None
    master_key_weight: int | None = None
    med_threshold: int | None = None
    name: str | None = None
    offer_id: int | None = None
    path: list[AssetOutput] | None = None
    price: float | None = None
    price_r: PriceR | None = None
    selling_asset_code: str | None = None
    selling_asset_issuer: str | None = None
    selling_asset_type: str | None = None
    set_flags: list[int] | None = None
    set_flags_string: list[str] | None = None
    signer_key: str | None = None
    signer_weight: int | None = None
    source_amount: float | None = None
    source_asset_code: str | None = None
    source_asset_issuer: str | None = None
    source_asset_type: str | None = None
    source_max: float | None = None
    starting_balance: float | None = None
    to: str | None = None
    trustee: str | None = None
    trustor: str | None = None
    value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Populated fields only, keyed by their output names."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "path":
                value = [asdict(asset) for asset in value]
            elif f.name == "price_r":
                value = asdict(value)
            elif isinstance(value, list):
                value = list(value)
            result[_DETAIL_KEYS.get(f.name, f.name)] = value
        return result


@dataclass(frozen=True)
class OperationOutput:
    source_account: str
    type: int
    application_order: int
    operation_details: Details = field(default_factory=Details)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_account": self.source_account,
            "type": self.type,
            "application_order": self.application_order,
            "details": self.operation_details.to_dict(),
        }


# ============================================================================
# TRANSFORMER
# ============================================================================


def _asset_fields(asset: Asset, prefix: str = "") -> dict[str, str | None]:
    asset_type, code, issuer = format_asset(asset)
    return {
        f"{prefix}asset_type": asset_type,
        f"{prefix}asset_code": code,
        f"{prefix}asset_issuer": issuer,
    }


def _price_fields(price: Price) -> dict[str, Any]:
    return {
        "price": convert_price_to_float(price),
        "price_r": PriceR(numerator=price.n, denominator=price.d),
    }


def _path(path: tuple[Asset, ...]) -> list[AssetOutput] | None:
    if not path:
        return None
    return [AssetOutput.from_asset(asset) for asset in path]


class OperationTransformer:
    """Transforms decoded operations into OperationOutput records.

    Stateless; one instance may be shared freely between threads.
    """

    def transform(
        self,
        operation: Operation,
        index: int,
        transaction: LedgerTransaction,
    ) -> OperationOutput:
        """Transform the operation at 0-based `index` within `transaction`.

        Raises:
            MalformedOperation: the operation kind code is negative.
            UnsupportedOperationKind: the kind code is not a supported kind.
            MissingOperationResult: a path payment has no result recorded at
                `index`. A recorded failure yields a zero executed amount.
        """
        body = operation.body
        type_code = body.type_code
        if type_code < 0:
            raise MalformedOperation(type_code, index)
        try:
            operation_type = OperationType(type_code)
        except ValueError:
            raise UnsupportedOperationKind(type_code) from None
        if isinstance(body, RawOperationBody):
            raise UnsupportedOperationKind(type_code)

        source_account = operation.source_account or transaction.source_account
        details = self._extract_details(operation_type, body, source_account, index, transaction)

        return OperationOutput(
            source_account=source_account.address,
            type=int(operation_type),
            application_order=index + 1,
            operation_details=details,
        )

    def _extract_details(
        self,
        operation_type: OperationType,
        body: OperationBody,
        source: MuxedAccount,
        index: int,
        transaction: LedgerTransaction,
    ) -> Details:
        extractors: dict[OperationType, Callable[..., Details]] = {
            OperationType.CREATE_ACCOUNT: self._create_account_details,
            OperationType.PAYMENT: self._payment_details,
            OperationType.PATH_PAYMENT_STRICT_RECEIVE: self._path_payment_strict_receive_details,
            OperationType.MANAGE_SELL_OFFER: self._manage_sell_offer_details,
            OperationType.CREATE_PASSIVE_SELL_OFFER: self._create_passive_sell_offer_details,
            OperationType.SET_OPTIONS: self._set_options_details,
            OperationType.CHANGE_TRUST: self._change_trust_details,
            OperationType.ALLOW_TRUST: self._allow_trust_details,
            OperationType.ACCOUNT_MERGE: self._account_merge_details,
            OperationType.INFLATION: self._inflation_details,
            OperationType.MANAGE_DATA: self._manage_data_details,
            OperationType.BUMP_SEQUENCE: self._bump_sequence_details,
            OperationType.MANAGE_BUY_OFFER: self._manage_buy_offer_details,
            OperationType.PATH_PAYMENT_STRICT_SEND: self._path_payment_strict_send_details,
        }
        return extractors[operation_type](body, source, index, transaction)

    def _create_account_details(
        self, op: CreateAccountOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        return Details(
            account=op.destination.address,
            funder=source.address,
            starting_balance=convert_stroop_value_to_real(op.starting_balance),
        )

    def _payment_details(
        self, op: PaymentOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        return Details(
            from_=source.address,
            to=op.destination.address,
            amount=convert_stroop_value_to_real(op.amount),
            **_asset_fields(op.asset),
        )

    def _path_payment_strict_receive_details(
        self,
        op: PathPaymentStrictReceiveOp,
        source: MuxedAccount,
        index: int,
        transaction: LedgerTransaction,
    ) -> Details:
        result = get_path_payment_strict_receive_result(transaction, index)
        if result is None:
            raise MissingOperationResult(index, int(op.type))

        return Details(
            from_=source.address,
            to=op.destination.address,
            amount=convert_stroop_value_to_real(op.dest_amount),
            source_amount=convert_stroop_value_to_real(result.send_amount()),
            source_max=convert_stroop_value_to_real(op.send_max),
            path=_path(op.path),
            **_asset_fields(op.dest_asset),
            **_asset_fields(op.send_asset, prefix="source_"),
        )

    def _path_payment_strict_send_details(
        self,
        op: PathPaymentStrictSendOp,
        source: MuxedAccount,
        index: int,
        transaction: LedgerTransaction,
    ) -> Details:
        result = get_path_payment_strict_send_result(transaction, index)
        if result is None:
            raise MissingOperationResult(index, int(op.type))

        return Details(
            from_=source.address,
            to=op.destination.address,
            amount=convert_stroop_value_to_real(result.dest_amount()),
            source_amount=convert_stroop_value_to_real(op.send_amount),
            destination_min=format_stroop_amount(op.dest_min),
            path=_path(op.path),
            **_asset_fields(op.dest_asset),
            **_asset_fields(op.send_asset, prefix="source_"),
        )

    def _manage_sell_offer_details(
        self,
        op: ManageSellOfferOp,
        source: MuxedAccount,
        index: int,
        transaction: LedgerTransaction,
    ) -> Details:
        return Details(
            offer_id=op.offer_id,
            amount=convert_stroop_value_to_real(op.amount),
            **_price_fields(op.price),
            **_asset_fields(op.selling, prefix="selling_"),
            **_asset_fields(op.buying, prefix="buying_"),
        )

    def _create_passive_sell_offer_details(
        self,
        op: CreatePassiveSellOfferOp,
        source: MuxedAccount,
        index: int,
        transaction: LedgerTransaction,
    ) -> Details:
        return Details(
            amount=convert_stroop_value_to_real(op.amount),
            **_price_fields(op.price),
            **_asset_fields(op.selling, prefix="selling_"),
            **_asset_fields(op.buying, prefix="buying_"),
        )

    def _manage_buy_offer_details(
        self, op: ManageBuyOfferOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        return Details(
            offer_id=op.offer_id,
            amount=convert_stroop_value_to_real(op.buy_amount),
            **_price_fields(op.price),
            **_asset_fields(op.selling, prefix="selling_"),
            **_asset_fields(op.buying, prefix="buying_"),
        )

    def _set_options_details(
        self, op: SetOptionsOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        values: dict[str, Any] = {}

        if op.inflation_dest is not None:
            values["inflation_dest"] = op.inflation_dest.address

        if op.clear_flags is not None:
            values["clear_flags"], values["clear_flags_string"] = decode_flags(op.clear_flags)

        if op.set_flags is not None:
            values["set_flags"], values["set_flags_string"] = decode_flags(op.set_flags)

        if op.master_weight is not None:
            values["master_key_weight"] = op.master_weight

        if op.low_threshold is not None:
            values["low_threshold"] = op.low_threshold

        if op.med_threshold is not None:
            values["med_threshold"] = op.med_threshold

        if op.high_threshold is not None:
            values["high_threshold"] = op.high_threshold

        if op.home_domain is not None:
            values["home_domain"] = op.home_domain

        if op.signer is not None:
            values["signer_key"] = op.signer.key.address
            values["signer_weight"] = op.signer.weight

        return Details(**values)

    def _change_trust_details(
        self, op: ChangeTrustOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        asset_fields = _asset_fields(op.line)
        return Details(
            trustor=source.address,
            trustee=asset_fields["asset_issuer"],
            limit=convert_stroop_value_to_real(op.limit),
            **asset_fields,
        )

    def _allow_trust_details(
        self, op: AllowTrustOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        # Only the issuer can authorize a trustline, so the source is the issuer
        asset = Asset.credit(op.asset_code, source.to_account_id())
        return Details(
            trustee=source.address,
            trustor=op.trustor.address,
            authorize=op.authorize != 0,
            **_asset_fields(asset),
        )

    def _account_merge_details(
        self, op: AccountMergeOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        return Details(account=source.address, into=op.destination.address)

    def _inflation_details(
        self, op: InflationOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        return Details()

    def _manage_data_details(
        self, op: ManageDataOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        value = None
        if op.data_value is not None:
            value = base64.b64encode(op.data_value).decode("ascii")
        return Details(name=op.data_name, value=value)

    def _bump_sequence_details(
        self, op: BumpSequenceOp, source: MuxedAccount, index: int, transaction: LedgerTransaction
    ) -> Details:
        return Details(bump_to=str(op.bump_to))


# Shared instance
operation_transformer = OperationTransformer()


def transform_operation(
    operation: Operation, index: int, transaction: LedgerTransaction
) -> OperationOutput:
    """Transform one operation; see OperationTransformer.transform."""
    return operation_transformer.transform(operation, index, transaction)
