"""Event Processor for Raise program logs"""
import base64
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from raise_client.errors import AccountDecodeError
from raise_client.models.milestone import VoteChoice
from raise_client.services.codec import BorshReader, BorshWriter, event_discriminator

logger = structlog.get_logger()

PROGRAM_DATA_PREFIX = "Program data: "

# Field codecs by wire type
_READERS: Dict[str, Callable[[BorshReader], Any]] = {
    "u8": BorshReader.u8,
    "u32": BorshReader.u32,
    "u64": BorshReader.u64,
    "i64": BorshReader.i64,
    "bool": BorshReader.boolean,
    "pubkey": BorshReader.pubkey,
    "string": BorshReader.string,
    "vote_choice": lambda r: r.enum(VoteChoice),
}

_WRITERS: Dict[str, Callable[[BorshWriter, Any], Any]] = {
    "u8": BorshWriter.u8,
    "u32": BorshWriter.u32,
    "u64": BorshWriter.u64,
    "i64": BorshWriter.i64,
    "bool": BorshWriter.boolean,
    "pubkey": BorshWriter.pubkey,
    "string": BorshWriter.string,
    "vote_choice": BorshWriter.enum,
}

# Event name -> ordered (field, wire type)
EVENT_LAYOUTS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "ProjectCreated": (
        ("project_id", "u64"),
        ("founder", "pubkey"),
        ("funding_goal", "u64"),
        ("metadata_uri", "string"),
    ),
    "ProjectApproved": (("project_id", "u64"),),
    "ProjectFunded": (("project_id", "u64"), ("amount_raised", "u64")),
    "InvestmentMade": (
        ("project_id", "u64"),
        ("investor", "pubkey"),
        ("amount", "u64"),
        ("nft_mint", "pubkey"),
        ("tier", "u8"),
        ("vote_weight", "u64"),
    ),
    "InvestmentCancelled": (
        ("project_id", "u64"),
        ("investor", "pubkey"),
        ("amount", "u64"),
        ("nft_mint", "pubkey"),
    ),
    "MilestoneCreated": (
        ("project_id", "u64"),
        ("milestone_index", "u8"),
        ("percentage", "u8"),
        ("description", "string"),
    ),
    "MilestoneSubmitted": (
        ("project_id", "u64"),
        ("milestone_index", "u8"),
        ("voting_ends_at", "i64"),
    ),
    "VoteCast": (
        ("project_id", "u64"),
        ("milestone_index", "u8"),
        ("voter", "pubkey"),
        ("choice", "vote_choice"),
        ("weight", "u64"),
    ),
    "MilestoneVoteFinalized": (
        ("project_id", "u64"),
        ("milestone_index", "u8"),
        ("passed", "bool"),
        ("yes_votes", "u64"),
        ("no_votes", "u64"),
    ),
    "FundsUnlocked": (("project_id", "u64"), ("milestone_index", "u8"), ("amount", "u64")),
    "TgeDateSet": (("project_id", "u64"), ("tge_date", "i64"), ("token_mint", "pubkey")),
    "TokensDeposited": (("project_id", "u64"), ("amount", "u64")),
    "TokensClaimed": (("project_id", "u64"), ("investor", "pubkey"), ("amount", "u64")),
    "RefundClaimed": (("project_id", "u64"), ("investor", "pubkey"), ("amount", "u64")),
    "PivotProposed": (("project_id", "u64"), ("new_metadata_uri", "string")),
    "PivotApproved": (("project_id", "u64"), ("withdrawal_window_ends_at", "i64")),
    "PivotFinalized": (
        ("project_id", "u64"),
        ("withdrawn_amount", "u64"),
        ("withdrawn_count", "u32"),
    ),
    "MilestoneReworked": (
        ("project_id", "u64"),
        ("milestone_index", "u8"),
        ("milestone_key", "pubkey"),
        ("consecutive_failures", "u8"),
        ("reworked_at", "i64"),
    ),
}


@dataclass(frozen=True)
class RaiseEvent:
    """A decoded program event"""
    name: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


class EventProcessor:
    """
    Decodes Anchor events emitted by the Raise program.

    Events are logged as "Program data: <base64>" where the payload is an
    8-byte discriminator (sha256("event:<Name>")[:8]) followed by the Borsh
    encoded fields. Lines from other programs are ignored.
    """

    EVENT_DISCRIMINATORS = {name: event_discriminator(name) for name in EVENT_LAYOUTS}

    def parse_logs(self, logs: Sequence[str]) -> List[RaiseEvent]:
        """Decode every Raise event found in a transaction's log messages, in order"""
        events = []
        for log in logs:
            if PROGRAM_DATA_PREFIX not in log:
                continue
            data_b64 = log.split(PROGRAM_DATA_PREFIX, 1)[1].strip()
            try:
                data = base64.b64decode(data_b64, validate=True)
            except ValueError as e:
                logger.warning("Failed to decode event", log=log[:100], error=str(e))
                continue

            event_type = self._identify_event(data)
            if event_type is None:
                continue
            try:
                events.append(self.decode_event(event_type, data[8:]))
            except AccountDecodeError as e:
                logger.warning("Failed to decode event", event=event_type, error=str(e))

        if events:
            logger.debug("Parsed events", events=[e.name for e in events])
        return events

    def parse_transaction(self, tx_data: Dict[str, Any]) -> List[RaiseEvent]:
        return self.parse_logs(self._extract_logs(tx_data))

    def _extract_logs(self, tx_data: Dict[str, Any]) -> List[str]:
        """Extract log messages from transaction data"""
        meta = tx_data.get("meta") or {}
        return meta.get("logMessages") or []

    def _identify_event(self, data: bytes) -> Optional[str]:
        """Identify event type from discriminator"""
        if len(data) < 8:
            return None

        discriminator = data[:8]
        for event_type, disc in self.EVENT_DISCRIMINATORS.items():
            if discriminator == disc:
                return event_type
        return None

    def decode_event(self, name: str, payload: bytes) -> RaiseEvent:
        """Decode an event body (without discriminator)"""
        reader = BorshReader(payload)
        data = {key: _READERS[kind](reader) for key, kind in EVENT_LAYOUTS[name]}
        return RaiseEvent(name=name, data=data)

    def encode_event(self, event: RaiseEvent) -> bytes:
        """Discriminator plus Borsh body, as the program emits it"""
        writer = BorshWriter().raw(self.EVENT_DISCRIMINATORS[event.name])
        for key, kind in EVENT_LAYOUTS[event.name]:
            _WRITERS[kind](writer, event.data[key])
        return writer.to_bytes()

    def to_log_line(self, event: RaiseEvent) -> str:
        return PROGRAM_DATA_PREFIX + base64.b64encode(self.encode_event(event)).decode()


def filter_events_by_name(events: Sequence[RaiseEvent], name: str) -> List[RaiseEvent]:
    return [e for e in events if e.name == name]


def find_event(events: Sequence[RaiseEvent], name: str) -> Optional[RaiseEvent]:
    """First event with the given name, or None"""
    return next((e for e in events if e.name == name), None)
