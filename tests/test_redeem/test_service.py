"""Tests for the redeem-split service — redeem/service.py."""

from __future__ import annotations

import pytest

from stas_sdk.bsv.address import get_pkh_from_public_key, privkey_to_wif
from stas_sdk.bsv.keys import private_key_to_public_key
from stas_sdk.bsv.script import iter_chunks, p2pkh_lock_script
from stas_sdk.bsv.sighash import verify_input_signature
from stas_sdk.bsv.transaction import Transaction
from stas_sdk.config.settings import FeeConfig, StasSettings
from stas_sdk.errors.redeem_errors import (
    InsufficientChangeError,
    TemplateError,
    ValidationError,
)
from stas_sdk.redeem import (
    PartiallySignedTransaction,
    RedeemSplitService,
    SignedTransaction,
    SplitDestination,
    Utxo,
    complete_partial,
    fee_estimate,
    signed,
    unsigned,
)
from stas_sdk.redeem.fee import (
    TEMPLATE_PRIVATE_KEY,
    build_split_destinations,
    payment_utxo_template,
    template_public_key,
)
from stas_sdk.token.templates import TokenKind, build_token_script
from stas_sdk.token.unlocking import verify_redeem_split


@pytest.fixture
def service() -> RedeemSplitService:
    return RedeemSplitService()


class TestSigned:
    """Fully signed builds."""

    async def test_example_split(
        self, service, owner_key, token_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        tx_hex = await service.signed(
            owner_key, token_utxo, destinations, payment_utxo, payment_key
        )
        fee = await service.fee_estimate(token_utxo, destinations)
        tx = Transaction.from_hex(tx_hex)
        assert len(tx.inputs) == 2
        assert [o.value for o in tx.outputs] == [3_000, 3_000, 4_000, 50_000 - fee]
        assert all(inp.script_sig for inp in tx.inputs)

    async def test_zero_fee(self, service, owner_key, token_utxo, destinations) -> None:
        tx = Transaction.from_hex(
            await service.signed(owner_key, token_utxo, destinations, None, None)
        )
        assert len(tx.inputs) == 1
        assert [o.value for o in tx.outputs] == [3_000, 3_000, 4_000]

    async def test_zero_change(
        self, service, owner_key, token_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        tx = Transaction.from_hex(
            await service.signed(
                owner_key, token_utxo, destinations, payment_utxo, payment_key,
                is_zero_change=True,
            )
        )
        assert len(tx.outputs) == 3

    async def test_stas20_data_and_change(
        self, service, owner_key, stas20_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        tx = Transaction.from_hex(
            await service.signed(
                owner_key, stas20_utxo, destinations, payment_utxo, payment_key, data="memo"
            )
        )
        assert len(tx.outputs) == 5
        assert tx.outputs[-1].value == 0
        assert tx.outputs[-1].script_pubkey.startswith(b"\x00\x6a")

    async def test_wif_keys(
        self, service, owner_key, token_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        raw = await service.signed(owner_key, token_utxo, destinations, payment_utxo, payment_key)
        wif = await service.signed(
            privkey_to_wif(owner_key),
            token_utxo,
            destinations,
            payment_utxo,
            privkey_to_wif(payment_key),
        )
        assert wif == raw

    @pytest.mark.parametrize("with_payment", [True, False])
    async def test_hex_verifies_on_its_own(
        self, service, owner_key, token_utxo, destinations, payment_utxo, payment_key,
        with_payment,
    ) -> None:
        tx_hex = await service.signed(
            owner_key,
            token_utxo,
            destinations,
            payment_utxo if with_payment else None,
            payment_key if with_payment else None,
        )
        tx = Transaction.from_hex(tx_hex)
        assert tx.inputs[0].prev_output is None
        verify_redeem_split(tx)

    async def test_stas20_hex_verifies_on_its_own(
        self, service, owner_key, stas20_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        tx_hex = await service.signed(
            owner_key, stas20_utxo, destinations, payment_utxo, payment_key, data="memo"
        )
        verify_redeem_split(Transaction.from_hex(tx_hex))

    async def test_uncompressed_wif_keys(
        self, service, owner_key, issuer_pkh, destinations, payment_key
    ) -> None:
        owner_pub = private_key_to_public_key(owner_key, compressed=False)
        payment_pub = private_key_to_public_key(payment_key, compressed=False)
        token = Utxo(
            txid=bytes.fromhex("cc" * 32),
            vout=0,
            script=build_token_script(
                TokenKind.STAS, get_pkh_from_public_key(owner_pub), issuer_pkh, b"TOKEN"
            ),
            satoshis=10_000,
        )
        payment = Utxo(
            txid=bytes.fromhex("dd" * 32),
            vout=1,
            script=p2pkh_lock_script(get_pkh_from_public_key(payment_pub)),
            satoshis=50_000,
        )
        tx = Transaction.from_hex(
            await service.signed(
                privkey_to_wif(owner_key, compressed=False),
                token,
                destinations,
                payment,
                privkey_to_wif(payment_key, compressed=False),
            )
        )
        verify_redeem_split(tx)
        assert tx.inputs[1].script_sig.endswith(bytes([65]) + payment_pub)
        signature = list(iter_chunks(tx.inputs[1].script_sig))[0].data
        assert verify_input_signature(
            tx, 1, signature, payment_pub, script=payment.script, satoshis=payment.satoshis
        )

    async def test_dict_arguments(
        self, service, owner_key, token_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        as_dicts = await service.signed(
            owner_key,
            {
                "txid": token_utxo.txid_hex,
                "vout": token_utxo.vout,
                "script": token_utxo.script.hex(),
                "satoshis": token_utxo.satoshis,
            },
            [{"address": d.address, "satoshis": d.satoshis} for d in destinations],
            {
                "txid": payment_utxo.txid_hex,
                "outputIndex": payment_utxo.vout,
                "scriptPubKey": payment_utxo.script.hex(),
                "amount": payment_utxo.satoshis,
            },
            payment_key,
        )
        plain = await service.signed(
            owner_key, token_utxo, destinations, payment_utxo, payment_key
        )
        assert as_dicts == plain

    async def test_insufficient_change(
        self, service, owner_key, token_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        poor = Utxo(payment_utxo.txid, payment_utxo.vout, payment_utxo.script, 300)
        with pytest.raises(InsufficientChangeError):
            await service.signed(owner_key, token_utxo, destinations, poor, payment_key)

    async def test_payment_without_key(
        self, service, owner_key, token_utxo, destinations, payment_utxo
    ) -> None:
        with pytest.raises(ValidationError, match="payment_private_key"):
            await service.signed(owner_key, token_utxo, destinations, payment_utxo, None)

    async def test_not_a_token(self, service, owner_key, payment_utxo, destinations) -> None:
        with pytest.raises(TemplateError):
            await service.signed(owner_key, payment_utxo, destinations, None, None)


class TestUnsigned:
    """Builds left for external signers."""

    async def test_descriptors(
        self, service, owner_pub, token_utxo, payment_pub, payment_utxo, destinations
    ) -> None:
        result = await service.unsigned(
            owner_pub, token_utxo, payment_pub, payment_utxo, destinations
        )
        assert isinstance(result, PartiallySignedTransaction)
        assert [(d.input_index, d.stas) for d in result.unsigned_data] == [(0, True), (1, False)]

    async def test_hex_public_keys(
        self, service, owner_pub, token_utxo, payment_pub, payment_utxo, destinations
    ) -> None:
        result = await service.unsigned(
            owner_pub.hex(), token_utxo, payment_pub.hex(), payment_utxo, destinations
        )
        assert result.unsigned_data[0].public_key == owner_pub

    async def test_complete_equals_signed(
        self, service, owner_key, owner_pub, token_utxo, payment_key, payment_pub,
        payment_utxo, destinations,
    ) -> None:
        partial = await service.unsigned(
            owner_pub, token_utxo, payment_pub, payment_utxo, destinations
        )
        completed = complete_partial(partial, {0: owner_key, 1: payment_key})
        assert isinstance(completed, SignedTransaction)
        expected = await service.signed(
            owner_key, token_utxo, destinations, payment_utxo, payment_key
        )
        assert completed.hex == expected

    async def test_zero_fee(self, service, owner_pub, token_utxo, destinations) -> None:
        result = await service.unsigned(owner_pub, token_utxo, None, None, destinations)
        assert len(result.tx.inputs) == 1
        assert len(result.unsigned_data) == 1

    async def test_invalid_public_key(self, service, token_utxo, destinations) -> None:
        with pytest.raises(ValidationError, match="owner_public_key"):
            await service.unsigned(b"\x05" * 33, token_utxo, None, None, destinations)


class TestFeeEstimate:
    """Fee estimates depend only on the transaction's shape."""

    async def test_deterministic(self, service, token_utxo, destinations) -> None:
        first = await service.fee_estimate(token_utxo, destinations)
        second = await service.fee_estimate(token_utxo, destinations)
        assert first == second > 0

    def test_non_decreasing_in_destinations(self, service, token_utxo, alice_address) -> None:
        fees = [
            service.estimate_fee(token_utxo, [SplitDestination(alice_address, 100)] * n)
            for n in range(1, 6)
        ]
        assert fees == sorted(fees)
        assert fees[-1] > fees[0]

    def test_ignores_destination_addresses(
        self, service, token_utxo, destinations, alice_address
    ) -> None:
        same_shape = [SplitDestination(alice_address, 1) for _ in destinations]
        assert service.estimate_fee(token_utxo, destinations) == service.estimate_fee(
            token_utxo, same_shape
        )

    def test_matches_template_size(self, token_utxo, destinations) -> None:
        per_byte = RedeemSplitService(StasSettings(fee=FeeConfig(satoshis=1, bytes=1)))
        template_key = template_public_key()
        placeholder = per_byte.build(
            template_key,
            token_utxo,
            template_key,
            payment_utxo_template(),
            build_split_destinations(len(destinations), token_utxo.satoshis),
            owner_private_key=TEMPLATE_PRIVATE_KEY,
            payment_private_key=TEMPLATE_PRIVATE_KEY,
            fee_estimate_call=True,
        )
        assert per_byte.estimate_fee(token_utxo, destinations) == placeholder.tx.size

    def test_rate_from_settings(self, token_utxo, destinations) -> None:
        cheap = RedeemSplitService(StasSettings(fee=FeeConfig(satoshis=50, bytes=1000)))
        dear = RedeemSplitService(StasSettings(fee=FeeConfig(satoshis=500, bytes=1000)))
        assert dear.estimate_fee(token_utxo, destinations) > cheap.estimate_fee(
            token_utxo, destinations
        )

    async def test_data_grows_stas20_estimate(self, service, stas20_utxo, destinations) -> None:
        without = await service.fee_estimate(stas20_utxo, destinations)
        with_data = await service.fee_estimate(stas20_utxo, destinations, "x" * 2_000)
        assert with_data > without


class TestModuleFunctions:
    async def test_signed_and_estimate(
        self, owner_key, token_utxo, destinations, payment_utxo, payment_key
    ) -> None:
        tx = Transaction.from_hex(
            await signed(owner_key, token_utxo, destinations, payment_utxo, payment_key)
        )
        fee = await fee_estimate(token_utxo, destinations)
        assert tx.outputs[3].value == payment_utxo.satoshis - fee

    async def test_unsigned(self, owner_pub, token_utxo, destinations) -> None:
        result = await unsigned(owner_pub, token_utxo, None, None, destinations)
        assert not result.is_complete
