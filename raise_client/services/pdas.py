"""Program-derived address derivation for Raise accounts.

Every account kind has a fixed ASCII prefix followed by its typed seeds. The
prefix and seed order are part of the program's wire contract, so addresses
derived here must match the program byte for byte.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from raise_client import constants as c
from raise_client.config import get_settings
from raise_client.errors import InvalidAddressError, MalformedSeedError
from raise_client.services.codec import encode_u8, encode_u64

settings = get_settings()

TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string(c.TOKEN_METADATA_PROGRAM_ID)

AddressLike = Union[Pubkey, str, bytes]

U64 = "u64"
U8 = "u8"
KEY = "pubkey"


class AddressKind(str, Enum):
    PROJECT = "project"
    ESCROW = "escrow"
    MILESTONE = "milestone"
    INVESTMENT = "investment"
    VOTE = "vote"
    PIVOT_PROPOSAL = "pivot_proposal"
    TGE_ESCROW = "tge_escrow"
    TGE_ESCROW_VAULT = "tge_escrow_vault"
    TOKEN_VAULT = "token_vault"
    SCAM_REPORT = "scam_report"
    ADMIN_CONFIG = "admin_config"
    NFT_MINT = "nft_mint"
    PROGRAM_AUTHORITY = "program_authority"
    TOKENOMICS = "tokenomics"
    TOKEN_MINT = "token_mint"
    VAULT_AUTHORITY = "vault_authority"
    INVESTOR_VAULT = "investor_vault"
    FOUNDER_VAULT = "founder_vault"
    LP_TOKEN_VAULT = "lp_token_vault"
    TREASURY_VAULT = "treasury_vault"
    LP_USDC_VAULT = "lp_usdc_vault"
    FOUNDER_VESTING = "founder_vesting"


# kind -> (prefix, seed widths in order)
SEED_LAYOUTS: Dict[AddressKind, Tuple[bytes, Tuple[str, ...]]] = {
    AddressKind.PROJECT: (c.SEED_PROJECT, (U64,)),
    AddressKind.ESCROW: (c.SEED_ESCROW, (U64,)),
    AddressKind.MILESTONE: (c.SEED_MILESTONE, (KEY, U8)),
    AddressKind.INVESTMENT: (c.SEED_INVESTMENT, (KEY, KEY)),
    AddressKind.VOTE: (c.SEED_VOTE, (KEY, KEY, U8)),
    AddressKind.PIVOT_PROPOSAL: (c.SEED_PIVOT, (KEY, U8)),
    AddressKind.TGE_ESCROW: (c.SEED_TGE_ESCROW, (KEY,)),
    AddressKind.TGE_ESCROW_VAULT: (c.SEED_TGE_ESCROW_VAULT, (KEY,)),
    AddressKind.TOKEN_VAULT: (c.SEED_TOKEN_VAULT, (KEY,)),
    AddressKind.SCAM_REPORT: (c.SEED_SCAM_REPORT, (KEY, KEY)),
    AddressKind.ADMIN_CONFIG: (c.SEED_ADMIN_CONFIG, ()),
    AddressKind.NFT_MINT: (c.SEED_NFT_MINT, (U64, KEY, U64)),
    AddressKind.PROGRAM_AUTHORITY: (c.SEED_AUTHORITY, ()),
    AddressKind.TOKENOMICS: (c.SEED_TOKENOMICS, (KEY,)),
    AddressKind.TOKEN_MINT: (c.SEED_TOKEN_MINT, (KEY,)),
    AddressKind.VAULT_AUTHORITY: (c.SEED_VAULT_AUTHORITY, (KEY,)),
    AddressKind.INVESTOR_VAULT: (c.SEED_INVESTOR_VAULT, (KEY,)),
    AddressKind.FOUNDER_VAULT: (c.SEED_FOUNDER_VAULT, (KEY,)),
    AddressKind.LP_TOKEN_VAULT: (c.SEED_LP_TOKEN_VAULT, (KEY,)),
    AddressKind.TREASURY_VAULT: (c.SEED_TREASURY_VAULT, (KEY,)),
    AddressKind.LP_USDC_VAULT: (c.SEED_LP_USDC_VAULT, (KEY,)),
    AddressKind.FOUNDER_VESTING: (c.SEED_FOUNDER_VESTING, (KEY,)),
}


def to_pubkey(value: AddressLike) -> Pubkey:
    """Validate and convert a base58 string, 32 raw bytes or Pubkey"""
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, str):
        try:
            return Pubkey.from_string(value.strip())
        except ValueError as e:
            raise InvalidAddressError(f"Invalid address: {value!r}") from e
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise InvalidAddressError(f"Address must be 32 bytes, got {len(value)}")
        return Pubkey.from_bytes(bytes(value))
    raise InvalidAddressError(f"Cannot convert {type(value).__name__} to an address")


def _encode_key(value: object) -> bytes:
    if isinstance(value, (Pubkey, str, bytes, bytearray)):
        try:
            return bytes(to_pubkey(value))
        except InvalidAddressError as e:
            raise MalformedSeedError(str(e)) from e
    raise MalformedSeedError(f"Public key seed expected, got {type(value).__name__}")


_ENCODERS = {U64: encode_u64, U8: encode_u8, KEY: _encode_key}


def seeds_for(kind: AddressKind, *seeds: object) -> List[bytes]:
    """Raw seed list for a kind, prefix first"""
    prefix, widths = SEED_LAYOUTS[kind]
    if len(seeds) != len(widths):
        raise MalformedSeedError(
            f"{kind.value} takes {len(widths)} seed(s), got {len(seeds)}"
        )
    return [prefix] + [_ENCODERS[width](seed) for width, seed in zip(widths, seeds)]


def metadata_address(mint: Pubkey) -> Pubkey:
    """Metaplex metadata account for a mint"""
    pda, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return pda


def master_edition_address(mint: Pubkey) -> Pubkey:
    """Metaplex master edition account for a mint"""
    pda, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return pda


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return get_associated_token_address(owner, mint)


class AddressDeriver:
    """Derives Raise PDAs for one deployed program id"""

    def __init__(self, program_id: Optional[AddressLike] = None):
        self.program_id = to_pubkey(program_id or settings.program_id)

    def find(self, kind: AddressKind, *seeds: object) -> Tuple[Pubkey, int]:
        """Address and bump seed"""
        return Pubkey.find_program_address(seeds_for(kind, *seeds), self.program_id)

    def derive(self, kind: AddressKind, *seeds: object) -> Pubkey:
        pda, _ = self.find(kind, *seeds)
        return pda

    # Named helpers

    def derive_project_pda(self, project_id: int) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.PROJECT, project_id)

    def derive_escrow_pda(self, project_id: int) -> Tuple[Pubkey, int]:
        """Escrow token account holding the raise, keyed by project id (not address)"""
        return self.find(AddressKind.ESCROW, project_id)

    def derive_milestone_pda(self, project: Pubkey, milestone_index: int) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.MILESTONE, project, milestone_index)

    def derive_investment_pda(self, project: Pubkey, nft_mint: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.INVESTMENT, project, nft_mint)

    def derive_vote_pda(
        self, milestone: Pubkey, voter: Pubkey, voting_round: int
    ) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.VOTE, milestone, voter, voting_round)

    def derive_pivot_pda(self, project: Pubkey, pivot_count: int) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.PIVOT_PROPOSAL, project, pivot_count)

    def derive_tge_escrow_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.TGE_ESCROW, project)

    def derive_tge_escrow_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.TGE_ESCROW_VAULT, project)

    def derive_token_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.TOKEN_VAULT, project)

    def derive_scam_report_pda(self, project: Pubkey, nft_mint: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.SCAM_REPORT, project, nft_mint)

    def derive_admin_config_pda(self) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.ADMIN_CONFIG)

    def derive_nft_mint_pda(
        self, project_id: int, investor: Pubkey, investment_count: int
    ) -> Tuple[Pubkey, int]:
        """Mint for the next investment NFT.

        investment_count must be read fresh from the project right before
        composing, since every landed investment consumes the slot.
        """
        return self.find(AddressKind.NFT_MINT, project_id, investor, investment_count)

    def derive_program_authority_pda(self) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.PROGRAM_AUTHORITY)

    def derive_tokenomics_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.TOKENOMICS, project)

    def derive_token_mint_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.TOKEN_MINT, project)

    def derive_vault_authority_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.VAULT_AUTHORITY, project)

    def derive_investor_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.INVESTOR_VAULT, project)

    def derive_founder_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.FOUNDER_VAULT, project)

    def derive_lp_token_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.LP_TOKEN_VAULT, project)

    def derive_treasury_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.TREASURY_VAULT, project)

    def derive_lp_usdc_vault_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.LP_USDC_VAULT, project)

    def derive_founder_vesting_pda(self, project: Pubkey) -> Tuple[Pubkey, int]:
        return self.find(AddressKind.FOUNDER_VESTING, project)

    def milestone_addresses(self, project: Pubkey, count: int) -> List[Pubkey]:
        """Milestone PDAs 0..count-1, in index order"""
        return [self.derive(AddressKind.MILESTONE, project, i) for i in range(count)]
