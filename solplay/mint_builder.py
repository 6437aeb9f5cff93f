import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .accounts import new_account, to_pubkey
from .errors import BuilderConsumedError, MissingFeePayerError, ValidationError
from .instructions.nft import next_edition_number, print_edition_instructions
from .instructions.token import (
    MINT_ACCOUNT_SIZE,
    create_ata_ix,
    create_mint_account,
    initialize_mint_ix,
    mint_to_ix,
    revoke_mint_authority_ix,
)
from .metaplex import build_create_master_edition_v3_ix, build_create_metadata_account_v3_ix, data_v2_arg
from .pda import associated_token_address, metadata_pubkey
from .token_metadata import TokenStandard
from .transaction import TransactionBuilder
from .types import MAX_DECIMALS

logger = logging.getLogger("solplay.mint")


@dataclass
class MintPlan:
    mint: Keypair
    owner: Pubkey
    fee_payer: Pubkey
    token_standard: TokenStandard
    decimals: int
    supply: int
    fixed_supply: bool
    max_edition_supply: Optional[int]
    master_edition_mint: Optional[Pubkey]
    edition: int
    metadata_pubkey: Pubkey
    metadata_instruction: Optional[Instruction]

    @property
    def mint_pubkey(self) -> Pubkey:
        return self.mint.pubkey()

    def resolve(self, client: Any) -> List[Instruction]:
        if client is None:
            raise ValidationError("a client is required to resolve mint instructions")
        if self.token_standard == TokenStandard.NON_FUNGIBLE_EDITION:
            return self._edition_instructions(client)
        rent = client.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        if self.token_standard == TokenStandard.NON_FUNGIBLE:
            return self._non_fungible_instructions(rent)
        return self._fungible_instructions(rent)

    def _fungible_instructions(self, rent: int) -> List[Instruction]:
        mint = self.mint_pubkey
        instructions = [
            create_mint_account(self.fee_payer, mint, rent),
            initialize_mint_ix(mint, self.decimals, self.owner, self.owner),
            self.metadata_instruction,
        ]
        if self.supply > 0:
            instructions.append(create_ata_ix(self.fee_payer, self.owner, mint))
            instructions.append(mint_to_ix(mint, associated_token_address(self.owner, mint), self.owner, self.supply))
            if self.fixed_supply:
                instructions.append(revoke_mint_authority_ix(mint, self.owner))
        return instructions

    def _non_fungible_instructions(self, rent: int) -> List[Instruction]:
        mint = self.mint_pubkey
        return [
            create_mint_account(self.fee_payer, mint, rent),
            initialize_mint_ix(mint, 0, self.owner, self.owner),
            self.metadata_instruction,
            create_ata_ix(self.fee_payer, self.owner, mint),
            mint_to_ix(mint, associated_token_address(self.owner, mint), self.owner, 1),
            build_create_master_edition_v3_ix(
                mint=mint,
                update_authority=self.owner,
                mint_authority=self.owner,
                payer=self.fee_payer,
                max_supply=self.max_edition_supply,
                metadata=self.metadata_pubkey,
            ),
        ]

    def _edition_instructions(self, client: Any) -> List[Instruction]:
        edition = self.edition or next_edition_number(client, self.master_edition_mint)
        rent = client.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        logger.debug("mint_edition master=%s edition=%s", self.master_edition_mint, edition)
        return print_edition_instructions(
            self.fee_payer,
            self.master_edition_mint,
            self.owner,
            self.mint_pubkey,
            self.owner,
            edition,
            rent,
        )


class MintBuilder(TransactionBuilder):
    """Fluent builder for a new token mint.

    Fee payer and owner default to each other. ``build`` returns the mint
    address and the base64 transaction, partially signed by the mint keypair.

        mint, tx = (
            MintBuilder(client)
            .set_fee_payer(wallet)
            .set_token_standard(TokenStandard.FUNGIBLE)
            .set_decimals(6)
            .set_supply(1_000_000)
            .set_metadata("Example", "EXM", "https://example.com/token.json")
            .build()
        )
    """

    def __init__(self, client: Any = None) -> None:
        super().__init__(client)
        self.mint: Optional[Keypair] = None
        self.owner: Optional[Pubkey] = None
        self.token_standard: Optional[TokenStandard] = None
        self.decimals = getattr(client, "default_decimals", MAX_DECIMALS)
        self.supply = 0
        self.fixed_supply = False
        self.max_edition_supply: Optional[int] = 0
        self.master_edition_mint: Optional[Pubkey] = None
        self.edition = 0
        self.metadata_pubkey: Optional[Pubkey] = None
        self.metadata_instruction: Optional[Instruction] = None
        self._metadata_data: Optional[dict] = None

    def set_mint(self, mint: Keypair) -> "MintBuilder":
        self.mint = mint
        return self

    def set_owner(self, owner: Union[str, Pubkey, Keypair]) -> "MintBuilder":
        self.owner = to_pubkey(owner)
        return self

    def set_token_standard(self, token_standard: Union[str, TokenStandard]) -> "MintBuilder":
        try:
            self.token_standard = TokenStandard(token_standard)
        except ValueError as exc:
            raise ValidationError("unknown token standard", token_standard=token_standard) from exc
        return self

    def set_decimals(self, decimals: int) -> "MintBuilder":
        if decimals is None or not 0 <= decimals <= MAX_DECIMALS:
            raise ValidationError("decimals must be between 0 and 9", decimals=decimals)
        self.decimals = decimals
        return self

    def set_supply(self, supply: int) -> "MintBuilder":
        if supply is None or supply < 0:
            raise ValidationError("supply must not be negative", supply=supply)
        self.supply = supply
        return self

    def set_fixed_supply(self, fixed: bool = True) -> "MintBuilder":
        self.fixed_supply = fixed
        return self

    def set_max_edition_supply(self, max_supply: Optional[int]) -> "MintBuilder":
        if max_supply is not None and max_supply < 0:
            raise ValidationError("max edition supply must not be negative", max_supply=max_supply)
        self.max_edition_supply = max_supply
        return self

    def set_master_edition_mint(self, master_mint: Union[str, Pubkey]) -> "MintBuilder":
        self.master_edition_mint = to_pubkey(master_mint)
        return self

    def set_edition(self, edition: int) -> "MintBuilder":
        if edition is None or edition < 0:
            raise ValidationError("edition must not be negative", edition=edition)
        self.edition = edition
        return self

    def set_metadata_pubkey(self, pubkey: Union[str, Pubkey]) -> "MintBuilder":
        self.metadata_pubkey = to_pubkey(pubkey)
        return self

    def set_metadata_instruction(self, instruction: Instruction) -> "MintBuilder":
        self.metadata_instruction = instruction
        return self

    def set_metadata(
        self,
        name: str,
        symbol: str,
        uri: str,
        seller_fee_basis_points: int = 0,
        creators: Optional[List[dict]] = None,
    ) -> "MintBuilder":
        """Have the builder emit CreateMetadataAccountV3 itself once mint and owner are known."""
        self._metadata_data = data_v2_arg(
            name, symbol, uri, seller_fee_basis_points=seller_fee_basis_points, creators=creators
        )
        return self

    def plan(self) -> MintPlan:
        if self._consumed:
            raise BuilderConsumedError()
        fee_payer = self.fee_payer or self.owner
        if fee_payer is None and self.nonce is not None:
            fee_payer = self.nonce_authority
        owner = self.owner or fee_payer
        if fee_payer is None:
            raise MissingFeePayerError("fee payer or owner is required")
        if self.token_standard is None:
            raise ValidationError("token standard is required")
        if self.mint is None:
            self.mint = new_account()
        mint = self.mint.pubkey()
        standard = self.token_standard

        decimals, supply = self.decimals, self.supply
        if standard == TokenStandard.FUNGIBLE_ASSET:
            decimals = 0
        elif standard in (TokenStandard.NON_FUNGIBLE, TokenStandard.NON_FUNGIBLE_EDITION):
            decimals, supply = 0, 1

        metadata_instruction = self.metadata_instruction
        if metadata_instruction is None and self._metadata_data is not None:
            metadata_instruction = build_create_metadata_account_v3_ix(
                mint=mint,
                mint_authority=owner,
                payer=fee_payer,
                update_authority=owner,
                data=self._metadata_data,
            )
        if standard == TokenStandard.NON_FUNGIBLE_EDITION:
            if self.master_edition_mint is None:
                raise ValidationError("master edition mint is required to print an edition")
        elif metadata_instruction is None:
            raise ValidationError("metadata instruction is required", token_standard=standard.value)

        return MintPlan(
            mint=self.mint,
            owner=owner,
            fee_payer=fee_payer,
            token_standard=standard,
            decimals=decimals,
            supply=supply,
            fixed_supply=self.fixed_supply,
            max_edition_supply=self.max_edition_supply,
            master_edition_mint=self.master_edition_mint,
            edition=self.edition,
            metadata_pubkey=self.metadata_pubkey or metadata_pubkey(mint),
            metadata_instruction=metadata_instruction,
        )

    def _transaction(self, plan: MintPlan, client: Any) -> TransactionBuilder:
        tx = TransactionBuilder(client).set_fee_payer(plan.fee_payer)
        tx.nonce, tx.nonce_authority = self.nonce, self.nonce_authority
        tx.add_instruction(plan.resolve, *self.steps)
        return tx.add_signer(plan.mint, *self.signers)

    def instructions(self, client: Any = None) -> List[Instruction]:
        client = client or self.client
        return self._transaction(self.plan(), client).instructions(client)

    def build(self, client: Any = None) -> Tuple[str, str]:
        plan = self.plan()
        client = client or self.client
        if client is None:
            raise ValidationError("a client is required to build a mint transaction")
        encoded = self._transaction(plan, client).build(client)
        self._consumed = True
        logger.info(
            "mint_built mint=%s standard=%s fee_payer=%s",
            plan.mint_pubkey,
            plan.token_standard.value,
            plan.fee_payer,
        )
        return str(plan.mint_pubkey), encoded
