"""Protocol constants mirrored from the Raise program"""
from dataclasses import dataclass


# PDA seed prefixes
SEED_PROJECT = b"project"
SEED_MILESTONE = b"milestone"
SEED_INVESTMENT = b"investment"
SEED_VOTE = b"vote"
SEED_ESCROW = b"escrow"
# Pivot proposals are derived from "pivot", not "pivot_proposal"
SEED_PIVOT = b"pivot"
SEED_TGE_ESCROW = b"tge_escrow"
SEED_TGE_ESCROW_VAULT = b"tge_escrow_vault"
SEED_TOKEN_VAULT = b"token_vault"
SEED_SCAM_REPORT = b"scam_report"
SEED_ADMIN_CONFIG = b"admin-config"
SEED_NFT_MINT = b"nft_mint"
SEED_AUTHORITY = b"authority"
SEED_TOKENOMICS = b"tokenomics"
SEED_TOKEN_MINT = b"token_mint"
SEED_VAULT_AUTHORITY = b"vault_authority"
SEED_INVESTOR_VAULT = b"investor_vault"
SEED_FOUNDER_VAULT = b"founder_vault"
SEED_LP_TOKEN_VAULT = b"lp_token_vault"
SEED_TREASURY_VAULT = b"treasury_vault"
SEED_LP_USDC_VAULT = b"lp_usdc_vault"
SEED_FOUNDER_VESTING = b"founder_vesting"

# Validation
MIN_MILESTONES = 2
MAX_MILESTONES = 10
MILESTONE_PERCENTAGE_SUM = 100
MAX_METADATA_URI_LENGTH = 200
MAX_MILESTONE_DESCRIPTION_LENGTH = 128
MAX_DEADLINE_EXTENSIONS = 3

# Tiers
MIN_TIERS = 1
MAX_TIERS = 10
MIN_TIER_AMOUNT = 10_000_000  # 10 USDC
MIN_TIER_MAX_LOTS = 1
MIN_TIER_TOKEN_RATIO = 1
MIN_TIER_VOTE_MULTIPLIER = 100  # 1.0x

# Governance
SCAM_THRESHOLD_PERCENT = 30
CONSECUTIVE_FAILURES_THRESHOLD = 3
MILESTONE_APPROVAL_THRESHOLD_PERCENT = 50

# Tokenomics
BPS_DENOMINATOR = 10_000
MIN_LP_USDC_ALLOCATION_BPS = 500
MIN_TOKEN_SYMBOL_LEN = 2
MAX_TOKEN_SYMBOL_LEN = 8
SECONDS_PER_MONTH = 30 * 86_400

# Distribution
MAX_DISTRIBUTION_BATCH = 10

# USDC
USDC_DECIMALS = 6

# Metaplex token metadata program
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"


@dataclass(frozen=True)
class ProtocolTiming:
    """Timing rules, in seconds.

    The program is built with a dev feature that shortens the waits that
    would otherwise make a devnet walkthrough take weeks.
    """
    voting_period: int
    min_deadline_duration: int
    max_deadline_duration: int
    inactivity_timeout: int
    cooling_off_period: int
    refund_window: int
    pivot_withdrawal_window: int
    exit_window: int
    distribution_stall_threshold: int
    tge_min_delay: int
    tge_max_delay: int
    post_tge_holdback: int
    scam_report_period: int

    @classmethod
    def production(cls) -> "ProtocolTiming":
        return cls(
            voting_period=1_209_600,  # 14 days
            min_deadline_duration=604_800,  # 7 days
            max_deadline_duration=31_536_000,  # 365 days
            inactivity_timeout=7_776_000,  # 90 days
            cooling_off_period=86_400,  # 24 hours
            refund_window=1_209_600,  # 14 days
            pivot_withdrawal_window=604_800,  # 7 days
            exit_window=604_800,  # 7 days
            distribution_stall_threshold=604_800,  # 7 days
            tge_min_delay=1_296_000,  # 15 days
            tge_max_delay=7_776_000,  # 90 days
            post_tge_holdback=2_592_000,  # 30 days
            scam_report_period=2_592_000,  # 30 days
        )

    @classmethod
    def development(cls) -> "ProtocolTiming":
        return cls(
            voting_period=60,
            min_deadline_duration=60,
            max_deadline_duration=31_536_000,
            inactivity_timeout=120,
            cooling_off_period=86_400,
            refund_window=1_209_600,
            pivot_withdrawal_window=60,
            exit_window=60,
            distribution_stall_threshold=60,
            tge_min_delay=60,
            tge_max_delay=7_776_000,
            post_tge_holdback=60,
            scam_report_period=60,
        )

    @classmethod
    def for_mode(cls, dev_mode: bool) -> "ProtocolTiming":
        return cls.development() if dev_mode else cls.production()
