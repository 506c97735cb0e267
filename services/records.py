from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from errors import ValidationError
from models import Scope, ScopeStats, SearchPage, SearchQuery
from ports.repos import PersonGatewayPort


logger = logging.getLogger(__name__)


def search_records(gateway: PersonGatewayPort, scope: Scope, filters: Optional[Dict[str, Any]] = None) -> SearchPage:
    """Newest-first page of stored people; text matches name, email, company or position."""
    query = SearchQuery(**{k: v for k, v in (filters or {}).items() if v is not None})
    return gateway.search(scope, query)


def delete_batch(gateway: PersonGatewayPort, scope: Scope, batch_id: str) -> int:
    if not batch_id or not batch_id.strip():
        raise ValidationError("batch_id is required")
    deleted = gateway.delete_by_batch(scope, batch_id)
    logger.info("Deleted %d records", deleted, extra={"batch_id": batch_id, "step": "delete_batch"})
    return deleted


def stats(gateway: PersonGatewayPort, scope: Scope) -> ScopeStats:
    return gateway.stats(scope)
