"""
contacts/models.py -- Domain dataclass for contact-form messages.
"""

from dataclasses import dataclass
from typing import Optional

CONTACT_STATUSES = ("new", "read", "replied", "archived")


@dataclass
class Contact:
    """A message submitted through the public contact form.

    ip_address and user_agent are captured from the submitting request for
    spam triage. id is None before the record is written to the database.
    """

    name: str
    email: str
    message: str
    status: str = "new"  # "new" | "read" | "replied" | "archived"
    id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
