from __future__ import annotations

from salesdesk.deals.models import Deal
from salesdesk.security.repository import BaseRepository


class DealRepository(BaseRepository):
    resource = "deal"
    model = Deal
    owner_field = "owner_id"
