"""
Tests for TransactionBuilder

Covers the pure planning phase, step resolution order, durable nonce
transactions and partial signing of the compiled message.
"""

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature
from solders.system_program import ID as SYS_PROGRAM_ID
from spl.memo.constants import MEMO_PROGRAM_ID

from solplay.errors import BuilderConsumedError, MissingFeePayerError, ValidationError
from solplay.instructions import MemoParams, TransferSOLParams, memo, transfer_sol
from solplay.transaction import (
    TransactionBuilder,
    compile_transaction,
    decode_transaction,
    missing_signers,
    sign_partial,
)


def memo_ix(text):
    return memo(MemoParams(memo=text))[0]


class TestTransactionPlan:
    """Validation that happens before any chain access."""

    def test_missing_fee_payer_fails_without_rpc(self, fake_client):
        """A builder without fee payer fails before touching the client."""
        builder = TransactionBuilder(fake_client).add_instruction(memo_ix("hello"))

        with pytest.raises(MissingFeePayerError):
            builder.build()

        assert fake_client.calls == []

    def test_durable_nonce_needs_both_keys(self, payer):
        """Only nonce or only authority is rejected."""
        builder = TransactionBuilder().set_fee_payer(payer.pubkey())
        builder.nonce_authority = payer.pubkey()

        with pytest.raises(ValidationError):
            builder.plan()

    def test_durable_fee_payer_defaults_to_authority(self):
        """In durable mode the nonce authority pays when no fee payer is set."""
        nonce, authority = Keypair().pubkey(), Keypair().pubkey()
        plan = TransactionBuilder().set_durable_nonce(nonce, authority).plan()

        assert plan.fee_payer == authority
        assert plan.durable

    def test_requires_client_only_for_deferred_steps(self, payer):
        """Plans report whether resolution needs chain access."""
        builder = TransactionBuilder().set_fee_payer(payer.pubkey()).add_instruction(memo_ix("a"))
        assert not builder.plan().requires_client

        builder.add_instruction(lambda client: [])
        assert builder.plan().requires_client


class TestStepResolution:
    """Resolution of pure and deferred steps."""

    def test_instruction_order_matches_registration(self, payer, fake_client):
        """Instructions come out in the order steps were added."""
        first, second, third = memo_ix("first"), memo_ix("second"), memo_ix("third")
        builder = (
            TransactionBuilder()
            .set_fee_payer(payer.pubkey())
            .add_instruction(first)
            .add_instruction(lambda client: [second])
            .add_instruction([third])
        )

        instructions = builder.instructions(fake_client)

        assert [bytes(ix.data) for ix in instructions] == [b"first", b"second", b"third"]

    def test_pure_steps_resolve_without_client(self, payer):
        """Only pure steps need no client."""
        recipient = Keypair().pubkey()
        builder = TransactionBuilder().set_fee_payer(payer.pubkey()).add_instruction(
            transfer_sol(TransferSOLParams(sender=payer.pubkey(), recipient=recipient, amount=10))
        )

        instructions = builder.instructions()

        assert len(instructions) == 1
        assert instructions[0].program_id == SYS_PROGRAM_ID

    def test_deferred_step_without_client_fails(self, payer):
        """Deferred steps cannot be resolved without a client."""
        builder = TransactionBuilder().set_fee_payer(payer.pubkey()).add_instruction(lambda client: [])

        with pytest.raises(ValidationError):
            builder.instructions()

    def test_empty_step_contributes_nothing(self, payer, fake_client):
        """A step may legitimately return zero instructions."""
        builder = (
            TransactionBuilder()
            .set_fee_payer(payer.pubkey())
            .add_instruction(lambda client: [])
            .add_instruction(memo_ix("only"))
        )

        assert [bytes(ix.data) for ix in builder.instructions(fake_client)] == [b"only"]

    def test_failing_step_aborts_build(self, payer, fake_client):
        """An error in any step aborts before the blockhash is fetched."""

        def broken(client):
            raise ValidationError("boom")

        builder = TransactionBuilder(fake_client).set_fee_payer(payer.pubkey()).add_instruction(broken)

        with pytest.raises(ValidationError, match="boom"):
            builder.build()

        assert "get_latest_blockhash" not in fake_client.call_names()


class TestBuild:
    """Compilation, signing and encoding."""

    def test_build_partially_signs(self, payer, fake_client):
        """Declared signers sign, other required signers stay empty."""
        other = Keypair()
        builder = (
            TransactionBuilder(fake_client)
            .set_fee_payer(payer.pubkey())
            .add_instruction(memo(MemoParams(memo="co-signed", signers=[other.pubkey()])))
            .add_signer(payer)
        )

        tx = decode_transaction(builder.build())

        assert tx.message.account_keys[0] == payer.pubkey()
        assert tx.message.recent_blockhash == Hash.from_string(fake_client.blockhash)
        assert tx.signatures[0] != Signature.default()
        assert missing_signers(tx) == [other.pubkey()]

    def test_build_is_single_use(self, payer, fake_client):
        """Building twice raises."""
        builder = TransactionBuilder(fake_client).set_fee_payer(payer.pubkey()).add_instruction(memo_ix("x"))
        builder.build()

        with pytest.raises(BuilderConsumedError):
            builder.build()

    def test_durable_nonce_prepends_advance(self, fake_client):
        """Durable transactions start with AdvanceNonceAccount and use the nonce value."""
        nonce, authority = Keypair().pubkey(), Keypair()
        builder = (
            TransactionBuilder(fake_client)
            .set_durable_nonce(nonce, authority.pubkey())
            .add_instruction(memo_ix("durable"))
            .add_signer(authority)
        )

        instructions = builder.instructions()
        assert instructions[0].program_id == SYS_PROGRAM_ID
        assert bytes(instructions[0].data)[:4] == bytes([4, 0, 0, 0])
        assert instructions[1].program_id == MEMO_PROGRAM_ID

        tx = decode_transaction(builder.build())
        assert tx.message.recent_blockhash == Hash.from_string(fake_client.nonce_blockhash)
        assert tx.message.account_keys[0] == authority.pubkey()
        assert "get_latest_blockhash" not in fake_client.call_names()

    def test_sign_partial_rejects_unknown_signer(self, payer):
        """Only keys required by the message may sign."""
        tx = compile_transaction(payer.pubkey(), [memo_ix("x")], Hash.new_unique())

        with pytest.raises(ValidationError):
            sign_partial(tx, [Keypair()])

    def test_sign_partial_fills_missing_signature(self, payer):
        """Signing later completes a partially signed transaction."""
        tx = compile_transaction(payer.pubkey(), [memo_ix("x")], Hash.new_unique())
        assert missing_signers(tx) == [payer.pubkey()]

        signed = sign_partial(tx, [payer])

        assert missing_signers(signed) == []
