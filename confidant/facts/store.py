"""
Fact Store

Upsert store for speech acts extracted upstream (requests, decisions,
commitments, questions...). Queries never raise: a malformed filter simply
matches nothing.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, MutableMapping, NamedTuple, Optional, Union

from pydantic import ValidationError

from ..common.schemas import Participant, SpeechAct, SpeechActType

logger = logging.getLogger("confidant.facts.store")

_NO_MATCH = object()


class StoredFact(NamedTuple):
    """A speech act plus the sequence number of its first insertion"""
    sequence: int
    act: SpeechAct


def _parse_time(value: Union[datetime, str, None]):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return _NO_MATCH
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return _NO_MATCH


def _parse_type(value: Union[SpeechActType, str, None]):
    if value is None:
        return None
    try:
        return SpeechActType(value)
    except ValueError:
        return _NO_MATCH


def _parse_email(value: Any):
    if value is None:
        return None
    if not isinstance(value, str):
        return _NO_MATCH
    return value


def _parse_confidence(value: Any):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _NO_MATCH
    return float(value)


class FactStore:
    """
    Speech act store keyed by act id.

    Re-adding an id overwrites the act (last write wins) but keeps its
    original insertion sequence, which is the tie-break for equal
    timestamps. The backing map can be any MutableMapping of
    id -> StoredFact.
    """

    def __init__(self, backend: Optional[MutableMapping[str, StoredFact]] = None):
        self._facts = backend if backend is not None else {}
        self._write_lock = threading.Lock()
        self._next_sequence = max((f.sequence for f in self._facts.values()), default=-1) + 1

    def __len__(self) -> int:
        return self.count()

    def add(self, act: SpeechAct) -> None:
        with self._write_lock:
            existing = self._facts.get(act.id)
            if existing is not None:
                self._facts[act.id] = StoredFact(existing.sequence, act)
                return
            self._facts[act.id] = StoredFact(self._next_sequence, act)
            self._next_sequence += 1

    def add_many(self, acts: Iterable[SpeechAct]) -> None:
        for act in acts:
            self.add(act)

    def get(self, act_id: str) -> Optional[SpeechAct]:
        stored = self._facts.get(act_id)
        return stored.act if stored is not None else None

    def _snapshot(self) -> List[StoredFact]:
        with self._write_lock:
            return list(self._facts.values())

    def query(
        self,
        type: Union[SpeechActType, str, None] = None,
        thread_id: Optional[str] = None,
        participant_email: Optional[str] = None,
        after: Union[datetime, str, None] = None,
        before: Union[datetime, str, None] = None,
        min_confidence: Optional[float] = None,
    ) -> List[SpeechAct]:
        """
        Filter speech acts. All filters are optional and combined with AND.

        Args:
            type: Speech act type (enum or its string value)
            thread_id: Only acts from this thread
            participant_email: Only acts whose participants include this address
            after: Inclusive lower bound on timestamp
            before: Inclusive upper bound on timestamp
            min_confidence: Minimum extraction confidence

        Returns:
            Matching acts, newest first; equal timestamps keep insertion order
        """
        act_type = _parse_type(type)
        after_ts = _parse_time(after)
        before_ts = _parse_time(before)
        min_conf = _parse_confidence(min_confidence)
        email = _parse_email(participant_email)
        if any(v is _NO_MATCH for v in (act_type, after_ts, before_ts, min_conf, email)):
            logger.debug(
                "Malformed fact query (type=%r participant=%r after=%r before=%r min_confidence=%r)",
                type, participant_email, after, before, min_confidence,
            )
            return []

        results = []
        for stored in self._snapshot():
            act = stored.act
            if act_type is not None and act.type != act_type:
                continue
            if thread_id is not None and act.thread_id != thread_id:
                continue
            if email is not None and email not in act.audience:
                continue
            if after_ts is not None and act.timestamp < after_ts:
                continue
            if before_ts is not None and act.timestamp > before_ts:
                continue
            if min_conf is not None and act.confidence < min_conf:
                continue
            results.append(stored)

        results.sort(key=lambda f: f.sequence)
        results.sort(key=lambda f: f.act.timestamp, reverse=True)
        return [f.act for f in results]

    def get_all(self) -> List[SpeechAct]:
        return self.query()

    def get_by_type(self, act_type: Union[SpeechActType, str]) -> List[SpeechAct]:
        return self.query(type=act_type)

    def get_by_thread(self, thread_id: str) -> List[SpeechAct]:
        return self.query(thread_id=thread_id)

    def get_visible_to(self, participant: Union[Participant, str]) -> List[SpeechAct]:
        """
        Acts that list this participant among their participants.

        This is a membership test and deliberately differs from
        AccessTracker.filter, which requires every current participant to be
        in the audience.
        """
        email = participant if isinstance(participant, str) else participant.email
        ordered = sorted(self._snapshot(), key=lambda f: f.sequence)
        return [f.act for f in ordered if email in f.act.audience]

    def clear(self) -> None:
        with self._write_lock:
            self._facts.clear()
            self._next_sequence = 0

    def count(self) -> int:
        return len(self._facts)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> List[Dict[str, Any]]:
        """JSON-ready records in insertion order"""
        ordered = sorted(self._snapshot(), key=lambda f: f.sequence)
        return [f.act.model_dump(mode="json") for f in ordered]

    def restore(self, records: Iterable[Dict[str, Any]]) -> int:
        """Replace the contents with serialized records; invalid ones are skipped"""
        acts = []
        for record in records:
            try:
                acts.append(SpeechAct.model_validate(record))
            except ValidationError as e:
                logger.warning("Skipping invalid speech act record: %s", e.errors()[:1])
        self.clear()
        self.add_many(acts)
        return len(acts)

    def dumps(self) -> str:
        return json.dumps(self.serialize(), indent=2)

    def loads(self, text: str) -> int:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Cannot restore fact store from invalid JSON: %s", e)
            return 0
        if not isinstance(data, list):
            logger.warning("Cannot restore fact store: expected a JSON list")
            return 0
        return self.restore(data)
