from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from models import PersonRecord, Scope, ScopedPersonRecord
from ports.repos import PersonGatewayPort


logger = logging.getLogger(__name__)

SCOPED_FIELDS = {"id", "user_id", "user_email", "is_duplicate_in_master", "master_reference_id"}


@dataclass(frozen=True)
class Classification:
    is_new_to_scope: bool
    existing_match: Optional[PersonRecord] = None
    is_duplicate_in_master: bool = False
    master_reference_id: Optional[int] = None


def _identity_keys(person: PersonRecord) -> Set[Tuple[str, ...]]:
    keys: Set[Tuple[str, ...]] = {("name_company", person.name, person.company)}
    if person.email:
        keys.add(("email", person.email))
    return keys


class DeduplicationEngine:
    """Decide which freshly extracted people are new to a scope.

    A person matches a stored record on (email and name), on email alone, or
    on (name and company); an empty email never matches on its own. User
    scopes are also checked against the shared corpus, which flags the record
    instead of dropping it.
    """

    def __init__(self, gateway: PersonGatewayPort):
        self.gateway = gateway

    def classify(self, candidate: PersonRecord, scope: Scope) -> Classification:
        existing = self.gateway.find_match(scope, candidate)
        if existing is not None:
            return Classification(is_new_to_scope=False, existing_match=existing)
        if not scope.is_user:
            return Classification(is_new_to_scope=True)

        master = self.gateway.find_match(Scope.shared(), candidate)
        if master is None:
            return Classification(is_new_to_scope=True)
        return Classification(
            is_new_to_scope=True,
            is_duplicate_in_master=True,
            master_reference_id=master.id,
        )

    def filter_new(self, candidates: Sequence[PersonRecord], scope: Scope) -> List[PersonRecord]:
        """New people of one increment; user-scope results are ScopedPersonRecords."""
        kept: List[PersonRecord] = []
        seen: Set[Tuple[str, ...]] = set()
        dropped = 0
        for candidate in candidates:
            keys = _identity_keys(candidate)
            if keys & seen:
                dropped += 1
                continue
            verdict = self.classify(candidate, scope)
            if not verdict.is_new_to_scope:
                dropped += 1
                continue
            seen |= keys
            if scope.is_user:
                kept.append(
                    ScopedPersonRecord(
                        **candidate.model_dump(exclude=SCOPED_FIELDS),
                        user_id=scope.user_id,
                        user_email=scope.user_email,
                        is_duplicate_in_master=verdict.is_duplicate_in_master,
                        master_reference_id=verdict.master_reference_id,
                    )
                )
            else:
                kept.append(candidate)
        if dropped:
            logger.info("Skipped %d people already known in %s", dropped, scope.key)
        return kept
