from __future__ import annotations

from salesdesk.customers.models import Customer
from salesdesk.security.repository import BaseRepository


class CustomerRepository(BaseRepository):
    resource = "customer"
    model = Customer
    owner_field = "assignee_id"
