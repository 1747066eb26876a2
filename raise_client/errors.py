"""Raise error taxonomy.

Program errors use the program's stable numeric code space, split into
non-overlapping category ranges. Ledger-reported failures are mapped back
onto these codes only. Rules the client checks before sending, which the
program reports differently or not at all, get LocalErrorCode values in a
separate space that no ledger error can carry. Malformed input gets its own
exception types and never reaches the network.
"""
import re
from enum import Enum, IntEnum
from typing import Any, Iterable, List, Optional


class ErrorCategory(str, Enum):
    """Numeric range owners"""
    STATE_TRANSITION = "state_transition"
    AUTHORIZATION = "authorization"
    INVESTMENT = "investment"
    MILESTONE = "milestone"
    TOKEN_GENERATION = "token_generation"
    PIVOT = "pivot"
    REFUND = "refund"
    SCAM_REPORT = "scam_report"


CATEGORY_RANGES = {
    ErrorCategory.STATE_TRANSITION: range(6000, 6100),
    ErrorCategory.AUTHORIZATION: range(6100, 6200),
    ErrorCategory.INVESTMENT: range(6200, 6300),
    ErrorCategory.MILESTONE: range(6300, 6400),
    ErrorCategory.TOKEN_GENERATION: range(6400, 6500),
    ErrorCategory.PIVOT: range(6500, 6600),
    ErrorCategory.REFUND: range(6800, 6900),
    ErrorCategory.SCAM_REPORT: range(6900, 7000),
}

# Local codes sit this far above the program range of the same category
LOCAL_CODE_OFFSET = 10_000


class ErrorCode(IntEnum):
    """Error codes the on-chain program reports"""

    # State transition (6000-6099)
    INVALID_STATE_TRANSITION = 6000
    PROJECT_NOT_IN_OPEN_STATE = 6001
    PROJECT_NOT_IN_PROGRESS = 6002
    MILESTONE_NOT_UNDER_REVIEW = 6003
    VOTING_PERIOD_ENDED = 6004
    VOTING_PERIOD_NOT_ENDED = 6005
    MILESTONE_NOT_PASSED = 6006
    MILESTONE_ALREADY_UNLOCKED = 6007
    PROJECT_ALREADY_FUNDED = 6008
    PROJECT_NOT_FUNDED = 6009

    # Authorization (6100-6199)
    UNAUTHORIZED_FOUNDER = 6100
    UNAUTHORIZED_ADMIN = 6101
    NOT_INVESTOR = 6102
    ALREADY_VOTED = 6103

    # Investment (6200-6299)
    INVESTMENT_BELOW_MINIMUM = 6200
    FUNDING_GOAL_EXCEEDED = 6201
    INVALID_TIER = 6202
    COOLING_OFF_PERIOD_ACTIVE = 6203
    COOLING_OFF_PERIOD_EXPIRED = 6204

    # Milestone (6300-6399)
    INVALID_MILESTONE_INDEX = 6300
    MILESTONE_PERCENTAGE_INVALID = 6301
    TOTAL_PERCENTAGE_EXCEEDED = 6302
    MILESTONE_NOT_IN_PROGRESS = 6303
    MILESTONE_NOT_APPROVED = 6304

    # Token generation (6400-6499)
    TGE_DATE_NOT_SET = 6400
    TGE_DATE_ALREADY_SET = 6401
    TGE_DATE_TOO_SOON = 6402
    TGE_DATE_TOO_LATE = 6403
    TGE_NOT_REACHED = 6404
    TOKENS_ALREADY_CLAIMED = 6405
    INSUFFICIENT_TOKENS_DEPOSITED = 6406

    # Pivot (6500-6599)
    PIVOT_ALREADY_PROPOSED = 6500
    NO_PIVOT_PROPOSED = 6501
    PIVOT_NOT_APPROVED = 6502
    PIVOT_WINDOW_NOT_ENDED = 6503
    PIVOT_WINDOW_ENDED = 6504
    ALREADY_WITHDRAWN_FROM_PIVOT = 6505

    # Refund (6800-6899)
    REFUND_ALREADY_CLAIMED = 6800
    REFUND_NOT_AVAILABLE = 6801
    PROJECT_NOT_ABANDONED = 6802

    # Scam report (6900-6999)
    SCAM_REPORT_PERIOD_ENDED = 6900
    SCAM_ALREADY_REPORTED = 6901
    SCAM_NOT_CONFIRMED = 6902
    HOLDBACK_ALREADY_RELEASED = 6903
    HOLDBACK_PERIOD_NOT_ENDED = 6904


class LocalErrorCode(IntEnum):
    """Rules checked by the client before sending"""

    # State transition
    PROJECT_NOT_DRAFT = 16010
    PROJECT_NOT_PENDING_APPROVAL = 16011
    PROJECT_NOT_COMPLETED = 16012

    # Investment
    TIER_LOTS_EXHAUSTED = 16205
    INVALID_FUNDING_GOAL = 16206
    INVALID_METADATA_URI = 16207
    INVALID_TOKENOMICS = 16208

    # Milestone and deadlines
    INVALID_MILESTONE_COUNT = 16305
    MILESTONE_PERCENTAGE_SUM_INVALID = 16306
    DEADLINE_TOO_SOON = 16307
    DEADLINE_TOO_FAR = 16308
    DEADLINE_NOT_SET = 16309
    DEADLINE_PASSED = 16310
    DEADLINE_NOT_EXTENDED = 16311
    DEADLINE_EXTENSIONS_EXHAUSTED = 16312
    DEADLINE_STATE_INVALID = 16313
    ABANDONMENT_NOT_REACHED = 16314
    MILESTONE_NOT_FAILED = 16315
    MILESTONE_DESCRIPTION_TOO_LONG = 16316

    # Distribution and vesting
    DISTRIBUTION_NOT_PENDING = 16407
    DISTRIBUTION_ALREADY_PENDING = 16408
    DISTRIBUTION_NOT_STALLED = 16409
    DISTRIBUTION_NOT_FORCE_COMPLETED = 16410
    DISTRIBUTION_BATCH_TOO_LARGE = 16411
    NO_FOUNDER_ALLOCATION = 16412
    VESTING_CLIFF_NOT_REACHED = 16413
    NOTHING_TO_CLAIM = 16414
    TGE_FAILURE_NOT_REACHED = 16415

    # Pivot
    PIVOT_NOT_PENDING = 16506

    # Exit window
    EXIT_WINDOW_NOT_OPEN = 16803
    EXIT_WINDOW_CLOSED = 16804


ERROR_MESSAGES = {
    ErrorCode.INVALID_STATE_TRANSITION: "Invalid project state transition",
    ErrorCode.PROJECT_NOT_IN_OPEN_STATE: "Project must be in Open state to accept investments",
    ErrorCode.PROJECT_NOT_IN_PROGRESS: "Project must be InProgress to perform this action",
    ErrorCode.MILESTONE_NOT_UNDER_REVIEW: "Milestone must be under review to vote",
    ErrorCode.VOTING_PERIOD_ENDED: "Voting period has ended",
    ErrorCode.VOTING_PERIOD_NOT_ENDED: "Voting period has not ended yet",
    ErrorCode.MILESTONE_NOT_PASSED: "Milestone did not pass voting",
    ErrorCode.MILESTONE_ALREADY_UNLOCKED: "Milestone funds already unlocked",
    ErrorCode.PROJECT_ALREADY_FUNDED: "Project has already reached funding goal",
    ErrorCode.PROJECT_NOT_FUNDED: "Project has not reached funding goal",

    ErrorCode.UNAUTHORIZED_FOUNDER: "Only the project founder can perform this action",
    ErrorCode.UNAUTHORIZED_ADMIN: "Only the admin can perform this action",
    ErrorCode.NOT_INVESTOR: "You must be an investor to perform this action",
    ErrorCode.ALREADY_VOTED: "You have already voted on this",

    ErrorCode.INVESTMENT_BELOW_MINIMUM: "Investment amount below minimum tier requirement",
    ErrorCode.FUNDING_GOAL_EXCEEDED: "Investment would exceed funding goal",
    ErrorCode.INVALID_TIER: "Invalid investment tier",
    ErrorCode.COOLING_OFF_PERIOD_ACTIVE: "Investment is within 24-hour cooling-off period",
    ErrorCode.COOLING_OFF_PERIOD_EXPIRED: "Cooling-off period has expired, cannot cancel",

    ErrorCode.INVALID_MILESTONE_INDEX: "Invalid milestone index",
    ErrorCode.MILESTONE_PERCENTAGE_INVALID: "Milestone percentage must be between 1-100",
    ErrorCode.TOTAL_PERCENTAGE_EXCEEDED: "Total milestone percentages exceed 100%",
    ErrorCode.MILESTONE_NOT_IN_PROGRESS: "Milestone must be in progress",
    ErrorCode.MILESTONE_NOT_APPROVED: "Milestone must be approved first",

    ErrorCode.TGE_DATE_NOT_SET: "TGE date has not been set",
    ErrorCode.TGE_DATE_ALREADY_SET: "TGE date has already been set",
    ErrorCode.TGE_DATE_TOO_SOON: "TGE date must be at least 15 days in the future",
    ErrorCode.TGE_DATE_TOO_LATE: "TGE date must be within 90 days",
    ErrorCode.TGE_NOT_REACHED: "TGE date has not been reached",
    ErrorCode.TOKENS_ALREADY_CLAIMED: "Tokens have already been claimed",
    ErrorCode.INSUFFICIENT_TOKENS_DEPOSITED: "Insufficient tokens deposited by founder",

    ErrorCode.PIVOT_ALREADY_PROPOSED: "A pivot is already pending",
    ErrorCode.NO_PIVOT_PROPOSED: "No pivot has been proposed",
    ErrorCode.PIVOT_NOT_APPROVED: "Pivot has not been approved by admin",
    ErrorCode.PIVOT_WINDOW_NOT_ENDED: "7-day withdrawal window has not ended",
    ErrorCode.PIVOT_WINDOW_ENDED: "7-day withdrawal window has ended",
    ErrorCode.ALREADY_WITHDRAWN_FROM_PIVOT: "Already withdrawn from this pivot",

    ErrorCode.REFUND_ALREADY_CLAIMED: "Refund has already been claimed",
    ErrorCode.REFUND_NOT_AVAILABLE: "Refund is not available",
    ErrorCode.PROJECT_NOT_ABANDONED: "Project has not been abandoned",

    ErrorCode.SCAM_REPORT_PERIOD_ENDED: "30-day scam report period has ended",
    ErrorCode.SCAM_ALREADY_REPORTED: "Already reported this project for scam",
    ErrorCode.SCAM_NOT_CONFIRMED: "Scam has not been confirmed",
    ErrorCode.HOLDBACK_ALREADY_RELEASED: "Holdback has already been released",
    ErrorCode.HOLDBACK_PERIOD_NOT_ENDED: "30-day holdback period has not ended",
}

LOCAL_ERROR_MESSAGES = {
    LocalErrorCode.PROJECT_NOT_DRAFT: "Project must be in Draft state",
    LocalErrorCode.PROJECT_NOT_PENDING_APPROVAL: "Project must be pending approval",
    LocalErrorCode.PROJECT_NOT_COMPLETED: "Project has not completed all milestones",

    LocalErrorCode.TIER_LOTS_EXHAUSTED: "No lots left in this tier",
    LocalErrorCode.INVALID_FUNDING_GOAL: "Funding goal must be greater than zero",
    LocalErrorCode.INVALID_METADATA_URI: "Metadata URI is too long",
    LocalErrorCode.INVALID_TOKENOMICS: "Invalid tokenomics configuration",

    LocalErrorCode.INVALID_MILESTONE_COUNT: "Projects need between 2 and 10 milestones",
    LocalErrorCode.MILESTONE_PERCENTAGE_SUM_INVALID: "Milestone percentages must sum to 100",
    LocalErrorCode.DEADLINE_TOO_SOON: "Deadline is earlier than the minimum duration from now",
    LocalErrorCode.DEADLINE_TOO_FAR: "Deadline must be within 1 year from now",
    LocalErrorCode.DEADLINE_NOT_SET: "Milestone deadline has not been set",
    LocalErrorCode.DEADLINE_PASSED: "Milestone deadline has already passed",
    LocalErrorCode.DEADLINE_NOT_EXTENDED: "New deadline must be later than the current deadline",
    LocalErrorCode.DEADLINE_EXTENSIONS_EXHAUSTED: "Milestone deadline can only be extended 3 times",
    LocalErrorCode.DEADLINE_STATE_INVALID: "Deadline cannot be set in the milestone's current state",
    LocalErrorCode.ABANDONMENT_NOT_REACHED: "Inactivity timeout after the deadline has not elapsed",
    LocalErrorCode.MILESTONE_NOT_FAILED: "Only failed milestones can be reworked",
    LocalErrorCode.MILESTONE_DESCRIPTION_TOO_LONG: "Milestone description must be at most 128 characters",

    LocalErrorCode.DISTRIBUTION_NOT_PENDING: "No token distribution is pending for this milestone",
    LocalErrorCode.DISTRIBUTION_ALREADY_PENDING: "A token distribution is already pending",
    LocalErrorCode.DISTRIBUTION_NOT_STALLED: "Distribution has not been stuck long enough to force-complete",
    LocalErrorCode.DISTRIBUTION_NOT_FORCE_COMPLETED: "Distribution for this milestone was not force-completed",
    LocalErrorCode.DISTRIBUTION_BATCH_TOO_LARGE: "Too many investments in one distribution batch",
    LocalErrorCode.NO_FOUNDER_ALLOCATION: "Project has no founder allocation to vest",
    LocalErrorCode.VESTING_CLIFF_NOT_REACHED: "Vesting cliff has not been reached",
    LocalErrorCode.NOTHING_TO_CLAIM: "Nothing to claim",
    LocalErrorCode.TGE_FAILURE_NOT_REACHED: "TGE failure conditions are not met",

    LocalErrorCode.PIVOT_NOT_PENDING: "Pivot is not awaiting moderator approval",

    LocalErrorCode.EXIT_WINDOW_NOT_OPEN: "Exit window is not open",
    LocalErrorCode.EXIT_WINDOW_CLOSED: "Exit window has closed",
}


def is_local_code(code: int) -> bool:
    return code >= LOCAL_CODE_OFFSET


def category_for(code: int) -> Optional[ErrorCategory]:
    if is_local_code(code):
        code -= LOCAL_CODE_OFFSET
    for category, codes in CATEGORY_RANGES.items():
        if code in codes:
            return category
    return None


def _known_code(code: int) -> Optional[IntEnum]:
    enum = LocalErrorCode if is_local_code(code) else ErrorCode
    try:
        return enum(code)
    except ValueError:
        return None


class RaiseError(Exception):
    """A program rule violation, raised locally or reported by the ledger"""

    def __init__(self, code: int, message: Optional[str] = None, logs: Optional[List[str]] = None):
        if message is None:
            known = _known_code(code)
            if known is None:
                message = f"Program error {code}"
            else:
                message = (LOCAL_ERROR_MESSAGES if is_local_code(code) else ERROR_MESSAGES)[known]
        super().__init__(message)
        self.code = code
        self.message = message
        self.logs = logs or []

    @property
    def category(self) -> Optional[ErrorCategory]:
        return category_for(self.code)

    @property
    def name(self) -> Optional[str]:
        known = _known_code(self.code)
        return known.name if known is not None else None

    @property
    def is_local(self) -> bool:
        """Raised by a client-side check rather than reported by the program"""
        return is_local_code(self.code)

    def is_code(self, code: int) -> bool:
        return self.code == code

    def __repr__(self):
        return f"<RaiseError {self.code} {self.name or ''}: {self.message}>"


def require(condition: bool, code: int, message: Optional[str] = None) -> None:
    """Raise RaiseError(code) unless condition holds"""
    if not condition:
        raise RaiseError(code, message)


class InvalidAddressError(ValueError):
    """Input could not be turned into a public key"""


class MalformedSeedError(ValueError):
    """A PDA seed does not fit its fixed wire width"""


class AccountDecodeError(ValueError):
    """Account bytes do not match the expected layout"""


class UnknownAccountError(AccountDecodeError):
    """Account discriminator is not registered"""


class AccountNotFoundError(LookupError):
    """An account an action depends on does not exist"""


class LedgerSubmissionError(Exception):
    """The ledger rejected a submitted transaction"""

    def __init__(self, message: str, logs: Optional[List[str]] = None, code: Optional[int] = None):
        super().__init__(message)
        self.logs = logs or []
        self.code = code


_ANCHOR_ERROR_NUMBER = re.compile(r"Error Number: (\d+)")
_CUSTOM_PROGRAM_ERROR = re.compile(r"custom program error: 0x([0-9a-fA-F]+)")
_INSTRUCTION_ERROR_CUSTOM = re.compile(r"Custom\((\d+)\)")


def extract_error_code(lines: Iterable[str]) -> Optional[int]:
    """Find a program error code in transaction logs or an error message"""
    for line in lines:
        match = _ANCHOR_ERROR_NUMBER.search(line)
        if match:
            return int(match.group(1))
        match = _CUSTOM_PROGRAM_ERROR.search(line)
        if match:
            return int(match.group(1), 16)
        match = _INSTRUCTION_ERROR_CUSTOM.search(line)
        if match:
            return int(match.group(1))
    return None


def parse_error(error: Any) -> Exception:
    """Map a ledger failure to a RaiseError when it carries a program code.

    Only ErrorCode values get a name and message; other program numbers keep
    the ledger's message. Anything without a recognizable code, or with a
    number from the local space, is returned unchanged so the caller can
    re-raise it.
    """
    if isinstance(error, RaiseError):
        return error
    if isinstance(error, LedgerSubmissionError):
        code = error.code
        if code is None:
            code = extract_error_code([str(error), *error.logs])
        if code is not None and not is_local_code(code):
            return RaiseError(code, _message_for(code, str(error)), error.logs)
        return error
    if isinstance(error, Exception):
        code = extract_error_code([str(error)])
        if code is not None and not is_local_code(code):
            return RaiseError(code, _message_for(code, str(error)))
        return error
    return Exception(str(error))


def _message_for(code: int, fallback: str) -> str:
    try:
        return ERROR_MESSAGES[ErrorCode(code)]
    except ValueError:
        return fallback


def is_raise_error(error: Any, code: Optional[int] = None) -> bool:
    if not isinstance(error, RaiseError):
        return False
    if code is not None:
        return error.code == code
    return True


def get_error_message(error: Any) -> str:
    """Human-readable message for any error"""
    parsed = parse_error(error)
    if isinstance(parsed, RaiseError):
        return parsed.message
    if str(parsed):
        return str(parsed)
    return "An unknown error occurred"
