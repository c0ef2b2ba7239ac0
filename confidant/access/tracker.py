"""
Access Tracker

Records who was present on every message and answers visibility questions.

Visibility rule: an item is visible to a set of current participants only if
that whole set was part of the item's original audience (subset test, not
overlap). Someone who joins a thread later can never see what was said
before they were added.
"""

import logging
import threading
from datetime import datetime
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    List,
    MutableMapping,
    Optional,
    Sequence,
    Set,
    TypeVar,
    Union,
)

from ..common.schemas import (
    AccessDecision,
    KnowledgeEntry,
    Message,
    Participant,
    ParticipantContext,
    SpeechAct,
)

logger = logging.getLogger("confidant.access.tracker")

ParticipantLike = Union[Participant, str]
Item = TypeVar("Item", Message, SpeechAct, KnowledgeEntry)


def _email(participant: ParticipantLike) -> str:
    return participant if isinstance(participant, str) else participant.email


def _emails(participants: Iterable[ParticipantLike]) -> FrozenSet[str]:
    return frozenset(_email(p) for p in participants)


def _label(participant: ParticipantLike) -> str:
    return participant if isinstance(participant, str) else participant.label


class AccessTracker:
    """
    Per-message audience registry.

    The audience map is any MutableMapping of message id -> frozenset of
    emails. It defaults to a dict; a multi-process deployment can pass a
    keyed external store with the same interface.

    Writers are serialized by a lock and store the whole audience in one
    assignment, so readers never see a partially written record.
    """

    def __init__(self, audiences: Optional[MutableMapping[str, FrozenSet[str]]] = None):
        self._audiences = audiences if audiences is not None else {}
        self._participants: Dict[str, Participant] = {}
        self._first_seen: Dict[str, datetime] = {}
        self._write_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._audiences)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track(self, message: Message) -> None:
        """Record the audience of a message. Re-tracking overwrites."""
        audience = message.audience
        with self._write_lock:
            self._audiences[message.id] = audience
            for participant in message.audience_participants:
                self._register(participant, message.timestamp)
        logger.debug("Tracked %s (%d participants)", message.id, len(audience))

    def track_batch(self, messages: Iterable[Message]) -> int:
        """Track many messages; returns how many were tracked"""
        count = 0
        for message in messages:
            self.track(message)
            count += 1
        return count

    def _register(self, participant: Participant, seen_at: datetime) -> None:
        known = self._participants.get(participant.email)
        if known is None or (not known.display_name and participant.display_name):
            self._participants[participant.email] = participant
        first = self._first_seen.get(participant.email)
        if first is None or seen_at < first:
            self._first_seen[participant.email] = seen_at

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def audience_of(self, message_id: str) -> Optional[FrozenSet[str]]:
        """Tracked audience of a message, or None if never tracked"""
        return self._audiences.get(message_id)

    def _item_audience(self, item) -> Optional[FrozenSet[str]]:
        if isinstance(item, Message):
            return self._audiences.get(item.id)
        return item.audience

    def filter(self, items: Sequence[Item], current_participants: Iterable[ParticipantLike]) -> List[Item]:
        """
        Keep the items whose audience contains every current participant.

        Messages are checked against their tracked audience (an untracked
        message is never visible). Speech acts and knowledge entries are
        checked against their own participants. Input order is preserved.
        """
        current = _emails(current_participants)
        if not current:
            logger.warning("filter() called with no current participants; returning nothing")
            return []

        visible = []
        for item in items:
            audience = self._item_audience(item)
            if audience is None:
                logger.debug("Message %s was never tracked; withholding it", item.id)
                continue
            if current <= audience:
                visible.append(item)
        return visible

    def can_access(
        self,
        source_participants: Iterable[ParticipantLike],
        requesting_participants: Iterable[ParticipantLike],
    ) -> AccessDecision:
        """allowed iff every requesting participant is in the source audience"""
        source = _emails(source_participants)
        restricted = [p for p in requesting_participants if _email(p) not in source]
        if not restricted:
            return AccessDecision(allowed=True)
        return self._denied(restricted)

    def check_messages(
        self,
        message_ids: Iterable[str],
        participants: Iterable[ParticipantLike],
    ) -> AccessDecision:
        """allowed iff every participant was in the audience of every message"""
        ids = list(message_ids)
        restricted = [
            p for p in participants
            if not all(self.has_access(_email(p), mid) for mid in ids)
        ]
        if not restricted:
            return AccessDecision(allowed=True)
        return self._denied(restricted)

    def _denied(self, restricted: List[ParticipantLike]) -> AccessDecision:
        names = ", ".join(_label(p) for p in restricted)
        return AccessDecision(
            allowed=False,
            reason=f"Cannot share this information due to the presence of: {names}",
            restricted_participants=[
                p if isinstance(p, Participant) else Participant(email=p) for p in restricted
            ],
        )

    def has_access(self, participant_email: str, message_id: str) -> bool:
        """Membership of one address in a tracked audience (unknown id -> False)"""
        audience = self._audiences.get(message_id)
        return audience is not None and participant_email in audience

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def all_participants(self) -> Set[Participant]:
        with self._write_lock:
            participants = list(self._participants.values())
        return set(participants)

    def participant_context(self, email: str) -> Optional[ParticipantContext]:
        """Everything the tracker knows about one participant"""
        participant = self._participants.get(email)
        if participant is None:
            return None
        accessible = [mid for mid, audience in list(self._audiences.items()) if email in audience]
        return ParticipantContext(
            participant=participant,
            accessible_messages=accessible,
            first_seen=self._first_seen.get(email),
        )

    def clear(self) -> None:
        with self._write_lock:
            self._audiences.clear()
            self._participants.clear()
            self._first_seen.clear()
