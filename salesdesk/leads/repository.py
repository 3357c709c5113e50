from __future__ import annotations

from typing import Any

from sqlalchemy.sql import Select

from salesdesk.leads.models import Lead
from salesdesk.security.context import Actor
from salesdesk.security.repository import BaseRepository
from salesdesk.security.scope import apply_branch_filter, apply_owner_filter


class LeadRepository(BaseRepository):
    resource = "lead"
    model = Lead
    owner_field = "assignee_id"

    def apply_scope_query(self, query: Select[Any], actor: Actor, *, owner_scoped: bool = True) -> Select[Any]:
        # Employees read the whole lead book with masked contact fields; managers read their team's.
        query = apply_branch_filter(query, self.model, actor)
        if owner_scoped and actor.is_manager:
            query = apply_owner_filter(query, Lead.assignee_id, actor)
        return query

    def apply_stats_scope(self, query: Select[Any], actor: Actor) -> Select[Any]:
        query = apply_branch_filter(query, self.model, actor)
        return apply_owner_filter(query, Lead.assignee_id, actor)
