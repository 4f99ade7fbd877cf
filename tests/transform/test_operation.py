"""Tests for the Stellar operation transformer.

The hardcoded transaction holds one operation of every supported kind, with
the expected records checked field by field against known-good exports.
"""

import base64

import pytest
from hexbytes import HexBytes

from stellar_etl.exceptions import (
    MalformedOperation,
    MissingOperationResult,
    UnsupportedOperationKind,
)
from stellar_etl.ledger.types import (
    AccountId,
    AccountMergeOp,
    AllowTrustOp,
    Asset,
    BumpSequenceOp,
    ChangeTrustOp,
    ClaimAtom,
    CreateAccountOp,
    CreatePassiveSellOfferOp,
    InflationOp,
    LedgerTransaction,
    ManageBuyOfferOp,
    ManageDataOp,
    ManageSellOfferOp,
    MuxedAccount,
    Operation,
    OperationResult,
    OperationResultCode,
    OperationResultTr,
    OperationType,
    PathPaymentStrictReceiveOp,
    PathPaymentStrictReceiveResult,
    PathPaymentStrictReceiveResultCode,
    PathPaymentStrictReceiveResultSuccess,
    PathPaymentStrictSendOp,
    PathPaymentStrictSendResult,
    PathPaymentStrictSendResultCode,
    PathPaymentStrictSendResultSuccess,
    PaymentOp,
    Price,
    RawOperationBody,
    SetOptionsOp,
    Signer,
    SignerKey,
    SignerKeyType,
    SimplePaymentResult,
    TransactionEnvelope,
    TransactionResult,
    TransactionResultCode,
)
from stellar_etl.transform.operation import (
    AssetOutput,
    Details,
    OperationOutput,
    PriceR,
    transform_operation,
)

ACCOUNT_THREE = MuxedAccount(HexBytes("0x" + "33" * 32))
ACCOUNT_FOUR = MuxedAccount(HexBytes("0x" + "44" * 32))
ACCOUNT_FOUR_ID = ACCOUNT_FOUR.to_account_id()
ACCOUNT_FIVE = MuxedAccount(HexBytes("0x" + "55" * 32))

SOURCE_ADDRESS = ACCOUNT_THREE.address
DEST_ADDRESS = ACCOUNT_FOUR.address

NATIVE_ASSET = Asset.native()
USDT_ASSET = Asset.credit("USDT", ACCOUNT_FOUR_ID)
USDT_ASSET_OUTPUT = AssetOutput(
    asset_type="credit_alphanum4", asset_code="USDT", asset_issuer=DEST_ADDRESS
)

ZERO_SIGNER_ADDRESS = "GAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAWHF"


def strict_receive_result(amount: int, offers=()) -> OperationResult:
    return OperationResult(
        code=OperationResultCode.OP_INNER,
        tr=OperationResultTr(
            type=OperationType.PATH_PAYMENT_STRICT_RECEIVE,
            result=PathPaymentStrictReceiveResult(
                code=PathPaymentStrictReceiveResultCode.SUCCESS,
                success=PathPaymentStrictReceiveResultSuccess(
                    last=SimplePaymentResult(ACCOUNT_FOUR_ID, NATIVE_ASSET, amount),
                    offers=tuple(offers),
                ),
            ),
        ),
    )


def strict_send_result(amount: int) -> OperationResult:
    return OperationResult(
        code=OperationResultCode.OP_INNER,
        tr=OperationResultTr(
            type=OperationType.PATH_PAYMENT_STRICT_SEND,
            result=PathPaymentStrictSendResult(
                code=PathPaymentStrictSendResultCode.SUCCESS,
                success=PathPaymentStrictSendResultSuccess(
                    last=SimplePaymentResult(ACCOUNT_FOUR_ID, NATIVE_ASSET, amount),
                ),
            ),
        ),
    )


def make_transaction(operations, results=None, source=ACCOUNT_THREE) -> LedgerTransaction:
    return LedgerTransaction(
        index=1,
        envelope=TransactionEnvelope(source_account=source, operations=tuple(operations)),
        result=TransactionResult(results=None if results is None else tuple(results)),
    )


HARDCODED_OPERATIONS = [
    Operation(CreateAccountOp(destination=ACCOUNT_FOUR_ID, starting_balance=25000000)),
    Operation(PaymentOp(destination=ACCOUNT_FOUR, asset=USDT_ASSET, amount=350000000)),
    Operation(PaymentOp(destination=ACCOUNT_FOUR, asset=NATIVE_ASSET, amount=350000000)),
    Operation(
        PathPaymentStrictReceiveOp(
            send_asset=NATIVE_ASSET,
            send_max=8951495900,
            destination=ACCOUNT_FOUR,
            dest_asset=NATIVE_ASSET,
            dest_amount=8951495900,
            path=(USDT_ASSET,),
        ),
        source_account=ACCOUNT_THREE,
    ),
    Operation(
        ManageSellOfferOp(
            selling=USDT_ASSET,
            buying=NATIVE_ASSET,
            amount=765860000,
            price=Price(128523, 250000),
            offer_id=0,
        )
    ),
    Operation(
        CreatePassiveSellOfferOp(
            selling=NATIVE_ASSET,
            buying=USDT_ASSET,
            amount=631595000,
            price=Price(99583200, 1257990000),
        )
    ),
    Operation(
        SetOptionsOp(
            inflation_dest=ACCOUNT_FOUR_ID,
            clear_flags=3,
            set_flags=4,
            master_weight=3,
            low_threshold=1,
            med_threshold=3,
            high_threshold=5,
            home_domain="2019=DRA;n-test",
            signer=Signer(SignerKey(SignerKeyType.ED25519, bytes(32)), weight=1),
        )
    ),
    Operation(ChangeTrustOp(line=USDT_ASSET, limit=500000000000000000)),
    Operation(AllowTrustOp(trustor=ACCOUNT_FOUR_ID, asset_code="USDT", authorize=1)),
    Operation(AccountMergeOp(destination=ACCOUNT_FOUR)),
    Operation(InflationOp()),
    Operation(ManageDataOp(data_name="test", data_value=b"value")),
    Operation(BumpSequenceOp(bump_to=100)),
    Operation(
        ManageBuyOfferOp(
            selling=USDT_ASSET,
            buying=NATIVE_ASSET,
            buy_amount=7654501001,
            price=Price(635863285, 1818402817),
            offer_id=100,
        )
    ),
    Operation(
        PathPaymentStrictSendOp(
            send_asset=NATIVE_ASSET,
            send_amount=1598182,
            destination=ACCOUNT_FOUR,
            dest_asset=NATIVE_ASSET,
            dest_min=4280460538,
            path=(USDT_ASSET,),
        )
    ),
    Operation(
        PathPaymentStrictSendOp(
            send_asset=NATIVE_ASSET,
            send_amount=1598182,
            destination=ACCOUNT_FOUR,
            dest_asset=NATIVE_ASSET,
            dest_min=4280460538,
        )
    ),
]

HARDCODED_RESULTS = [OperationResult()] * 3 + [
    strict_receive_result(8946764349),
    *[OperationResult()] * 10,
    strict_send_result(4334043858),
    strict_send_result(4280460538),
]

HARDCODED_TRANSACTION = make_transaction(HARDCODED_OPERATIONS, HARDCODED_RESULTS)

HARDCODED_OUTPUTS = [
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=0,
        application_order=1,
        operation_details=Details(
            account=DEST_ADDRESS,
            funder=SOURCE_ADDRESS,
            starting_balance=2.5,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=1,
        application_order=2,
        operation_details=Details(
            from_=SOURCE_ADDRESS,
            to=DEST_ADDRESS,
            amount=35.0,
            asset_code="USDT",
            asset_type="credit_alphanum4",
            asset_issuer=DEST_ADDRESS,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=1,
        application_order=3,
        operation_details=Details(
            from_=SOURCE_ADDRESS,
            to=DEST_ADDRESS,
            amount=35.0,
            asset_type="native",
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=2,
        application_order=4,
        operation_details=Details(
            from_=SOURCE_ADDRESS,
            to=DEST_ADDRESS,
            source_amount=894.6764349,
            source_max=895.14959,
            amount=895.14959,
            source_asset_type="native",
            asset_type="native",
            path=[USDT_ASSET_OUTPUT],
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=3,
        application_order=5,
        operation_details=Details(
            price=0.514092,
            amount=76.586,
            price_r=PriceR(numerator=128523, denominator=250000),
            selling_asset_code="USDT",
            selling_asset_type="credit_alphanum4",
            selling_asset_issuer=DEST_ADDRESS,
            buying_asset_type="native",
            offer_id=0,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=4,
        application_order=6,
        operation_details=Details(
            amount=63.1595,
            price=0.0791606,
            price_r=PriceR(numerator=99583200, denominator=1257990000),
            buying_asset_code="USDT",
            buying_asset_type="credit_alphanum4",
            buying_asset_issuer=DEST_ADDRESS,
            selling_asset_type="native",
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=5,
        application_order=7,
        operation_details=Details(
            inflation_dest=DEST_ADDRESS,
            clear_flags=[1, 2],
            clear_flags_string=["auth_required", "auth_revocable"],
            set_flags=[4],
            set_flags_string=["auth_immutable"],
            master_key_weight=3,
            low_threshold=1,
            med_threshold=3,
            high_threshold=5,
            home_domain="2019=DRA;n-test",
            signer_key=ZERO_SIGNER_ADDRESS,
            signer_weight=1,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=6,
        application_order=8,
        operation_details=Details(
            trustor=SOURCE_ADDRESS,
            trustee=DEST_ADDRESS,
            limit=50000000000.0,
            asset_code="USDT",
            asset_type="credit_alphanum4",
            asset_issuer=DEST_ADDRESS,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=7,
        application_order=9,
        operation_details=Details(
            trustee=SOURCE_ADDRESS,
            trustor=DEST_ADDRESS,
            authorize=True,
            asset_code="USDT",
            asset_type="credit_alphanum4",
            asset_issuer=SOURCE_ADDRESS,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=8,
        application_order=10,
        operation_details=Details(account=SOURCE_ADDRESS, into=DEST_ADDRESS),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=9,
        application_order=11,
        operation_details=Details(),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=10,
        application_order=12,
        operation_details=Details(
            name="test",
            value=base64.b64encode(bytes([0x76, 0x61, 0x6C, 0x75, 0x65])).decode(),
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=11,
        application_order=13,
        operation_details=Details(bump_to="100"),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=12,
        application_order=14,
        operation_details=Details(
            price=0.3496823,
            amount=765.4501001,
            price_r=PriceR(numerator=635863285, denominator=1818402817),
            selling_asset_code="USDT",
            selling_asset_type="credit_alphanum4",
            selling_asset_issuer=DEST_ADDRESS,
            buying_asset_type="native",
            offer_id=100,
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=13,
        application_order=15,
        operation_details=Details(
            from_=SOURCE_ADDRESS,
            to=DEST_ADDRESS,
            source_amount=0.1598182,
            destination_min="428.0460538",
            amount=433.4043858,
            path=[USDT_ASSET_OUTPUT],
            source_asset_type="native",
            asset_type="native",
        ),
    ),
    OperationOutput(
        source_account=SOURCE_ADDRESS,
        type=13,
        application_order=16,
        operation_details=Details(
            from_=SOURCE_ADDRESS,
            to=DEST_ADDRESS,
            source_amount=0.1598182,
            destination_min="428.0460538",
            amount=428.0460538,
            path=None,
            source_asset_type="native",
            asset_type="native",
        ),
    ),
]


class TestTransformEveryOperationKind:
    @pytest.mark.parametrize("index", range(len(HARDCODED_OPERATIONS)))
    def test_hardcoded_operation(self, index):
        output = transform_operation(HARDCODED_OPERATIONS[index], index, HARDCODED_TRANSACTION)
        assert output == HARDCODED_OUTPUTS[index]

    def test_every_supported_kind_is_covered(self):
        kinds = {op.body.type for op in HARDCODED_OPERATIONS}
        assert kinds == set(OperationType)


class TestOperationKindValidation:
    def test_negative_kind_is_malformed(self):
        operation = Operation(RawOperationBody(type_code=-1))
        transaction = make_transaction([operation])

        with pytest.raises(MalformedOperation) as exc_info:
            transform_operation(operation, 1, transaction)

        assert exc_info.value.type_code == -1
        assert exc_info.value.operation_index == 1
        assert exc_info.value.application_order == 2
        assert str(exc_info.value) == "The operation type (-1) is negative for operation index 1"

    @pytest.mark.parametrize("type_code", [14, 20, 2**31 - 1])
    def test_unknown_kind_is_unsupported(self, type_code):
        operation = Operation(RawOperationBody(type_code=type_code))
        transaction = make_transaction([operation])

        with pytest.raises(UnsupportedOperationKind) as exc_info:
            transform_operation(operation, 0, transaction)

        assert exc_info.value.type_code == type_code
        assert str(exc_info.value) == f"Unknown operation type: {type_code}"

    def test_undecoded_body_of_supported_kind_is_unsupported(self):
        operation = Operation(RawOperationBody(type_code=int(OperationType.PAYMENT)))
        transaction = make_transaction([operation])

        with pytest.raises(UnsupportedOperationKind):
            transform_operation(operation, 0, transaction)

    def test_both_errors_share_a_base(self):
        from stellar_etl.exceptions import TransformError

        assert issubclass(MalformedOperation, TransformError)
        assert issubclass(UnsupportedOperationKind, TransformError)
        assert not issubclass(MalformedOperation, UnsupportedOperationKind)


class TestSourceAccountResolution:
    def test_inherits_transaction_source(self):
        operation = Operation(InflationOp())
        transaction = make_transaction([operation], source=ACCOUNT_FIVE)

        output = transform_operation(operation, 0, transaction)

        assert output.source_account == ACCOUNT_FIVE.address

    def test_operation_override_wins(self):
        operation = Operation(AccountMergeOp(destination=ACCOUNT_FOUR), source_account=ACCOUNT_FIVE)
        transaction = make_transaction([operation], source=ACCOUNT_THREE)

        output = transform_operation(operation, 0, transaction)

        assert output.source_account == ACCOUNT_FIVE.address
        assert output.operation_details.account == ACCOUNT_FIVE.address

    def test_muxed_source_renders_underlying_account(self):
        muxed = MuxedAccount(ACCOUNT_FIVE.key, id=1234)
        operation = Operation(PaymentOp(ACCOUNT_FOUR, NATIVE_ASSET, 1), source_account=muxed)
        transaction = make_transaction([operation])

        output = transform_operation(operation, 0, transaction)

        assert output.source_account == ACCOUNT_FIVE.address
        assert output.operation_details.from_ == ACCOUNT_FIVE.address


class TestPathPaymentResults:
    def test_strict_receive_without_result_raises(self):
        operation = HARDCODED_OPERATIONS[3]
        transaction = make_transaction([operation])

        with pytest.raises(MissingOperationResult) as exc_info:
            transform_operation(operation, 0, transaction)

        assert exc_info.value.index == 0
        assert exc_info.value.type_code == int(OperationType.PATH_PAYMENT_STRICT_RECEIVE)

    def test_strict_send_with_failed_result_has_zero_amount(self):
        operation = HARDCODED_OPERATIONS[14]
        failed = OperationResult(
            tr=OperationResultTr(
                type=OperationType.PATH_PAYMENT_STRICT_SEND,
                result=PathPaymentStrictSendResult(
                    code=PathPaymentStrictSendResultCode.UNDER_DESTMIN
                ),
            )
        )
        transaction = make_transaction([operation], [failed])

        output = transform_operation(operation, 0, transaction)

        assert output.operation_details.amount == 0.0
        assert output.operation_details.source_amount == 0.1598182
        assert output.operation_details.destination_min == "428.0460538"

    def test_strict_receive_in_failed_transaction_has_zero_source_amount(self):
        operation = HARDCODED_OPERATIONS[3]
        underfunded = OperationResult(
            tr=OperationResultTr(
                type=OperationType.PATH_PAYMENT_STRICT_RECEIVE,
                result=PathPaymentStrictReceiveResult(
                    code=PathPaymentStrictReceiveResultCode.UNDERFUNDED
                ),
            )
        )
        transaction = LedgerTransaction(
            index=1,
            envelope=TransactionEnvelope(source_account=ACCOUNT_THREE, operations=(operation,)),
            result=TransactionResult(
                code=TransactionResultCode.TX_FAILED, results=(underfunded,)
            ),
        )

        output = transform_operation(operation, 0, transaction)

        assert output.application_order == 1
        assert output.operation_details.source_amount == 0.0
        assert output.operation_details.amount == 895.14959
        assert output.operation_details.source_max == 895.14959

    def test_strict_receive_sums_offers_bought_in_source_asset(self):
        offers = [
            ClaimAtom(ACCOUNT_FOUR_ID, 1, USDT_ASSET, 10, NATIVE_ASSET, 30000000),
            ClaimAtom(ACCOUNT_FOUR_ID, 2, USDT_ASSET, 10, NATIVE_ASSET, 20000000),
            ClaimAtom(ACCOUNT_FOUR_ID, 3, NATIVE_ASSET, 10, USDT_ASSET, 99990000),
        ]
        operation = HARDCODED_OPERATIONS[3]
        transaction = make_transaction([operation], [strict_receive_result(1, offers)])

        output = transform_operation(operation, 0, transaction)

        assert output.operation_details.source_amount == 5.0
        assert output.operation_details.amount == 895.14959

    def test_result_is_read_at_operation_index(self):
        operations = [Operation(InflationOp()), HARDCODED_OPERATIONS[14]]
        transaction = make_transaction(
            operations, [OperationResult(), strict_send_result(10000000)]
        )

        output = transform_operation(operations[1], 1, transaction)

        assert output.application_order == 2
        assert output.operation_details.amount == 1.0


class TestDetailFields:
    def test_manage_data_delete_has_no_value(self):
        operation = Operation(ManageDataOp(data_name="stale"))
        output = transform_operation(operation, 0, make_transaction([operation]))

        assert output.operation_details == Details(name="stale")

    def test_change_trust_native_has_no_trustee(self):
        operation = Operation(ChangeTrustOp(line=NATIVE_ASSET, limit=10000000))
        output = transform_operation(operation, 0, make_transaction([operation]))

        assert output.operation_details.trustee is None
        assert output.operation_details.limit == 1.0

    def test_set_options_without_fields_is_empty(self):
        operation = Operation(SetOptionsOp())
        output = transform_operation(operation, 0, make_transaction([operation]))

        assert output.operation_details == Details()

    def test_allow_trust_zero_is_not_authorized(self):
        operation = Operation(AllowTrustOp(ACCOUNT_FOUR_ID, "LONGASSET12", 0))
        output = transform_operation(operation, 0, make_transaction([operation]))

        assert output.operation_details.authorize is False
        assert output.operation_details.asset_type == "credit_alphanum12"
        assert output.operation_details.asset_code == "LONGASSET12"

    def test_pre_auth_and_hash_x_signers(self):
        pre_auth = SignerKey(SignerKeyType.PRE_AUTH_TX, bytes(32))
        hash_x = SignerKey(SignerKeyType.HASH_X, bytes(32))

        for key, prefix in ((pre_auth, "T"), (hash_x, "X")):
            operation = Operation(SetOptionsOp(signer=Signer(key, 2)))
            output = transform_operation(operation, 0, make_transaction([operation]))

            assert output.operation_details.signer_key.startswith(prefix)
            assert output.operation_details.signer_weight == 2

    def test_bump_sequence_beyond_float_precision(self):
        operation = Operation(BumpSequenceOp(bump_to=2**63 - 1))
        output = transform_operation(operation, 0, make_transaction([operation]))

        assert output.operation_details.bump_to == "9223372036854775807"


class TestOutputDict:
    def test_to_dict_drops_absent_fields(self):
        output = HARDCODED_OUTPUTS[1]

        assert output.to_dict() == {
            "source_account": SOURCE_ADDRESS,
            "type": 1,
            "application_order": 2,
            "details": {
                "from": SOURCE_ADDRESS,
                "to": DEST_ADDRESS,
                "amount": 35.0,
                "asset_code": "USDT",
                "asset_type": "credit_alphanum4",
                "asset_issuer": DEST_ADDRESS,
            },
        }

    def test_to_dict_flattens_nested_values(self):
        details = HARDCODED_OUTPUTS[3].operation_details.to_dict()

        assert details["path"] == [
            {"asset_type": "credit_alphanum4", "asset_code": "USDT", "asset_issuer": DEST_ADDRESS}
        ]

        details = HARDCODED_OUTPUTS[4].operation_details.to_dict()
        assert details["price_r"] == {"numerator": 128523, "denominator": 250000}
        assert details["offer_id"] == 0
