"""
Centralized Authentication Models for the Ella Rises portal
Provides the identity snapshot kept in the session for Flask-Login
"""

from typing import Any, Mapping, Optional

from flask_login import UserMixin

MANAGER = 'manager'
COMMON = 'common'

# Closed role set. Registration always yields COMMON.
ALLOWED_ROLES = frozenset({MANAGER, COMMON})

SESSION_IDENTITY_KEY = 'identity'


class SessionIdentity(UserMixin):
    """
    Identity snapshot stored in the session at login.
    Carries id, display name and role; never the credential.
    """

    def __init__(self, user_id: int, first_name: str, role: str):
        self.id = int(user_id)
        self.first_name = first_name
        self.role = role

    @classmethod
    def from_user(cls, user) -> 'SessionIdentity':
        return cls(user.userid, user.userfirstname, user.userrole)

    @classmethod
    def from_snapshot(cls, snapshot: Optional[Mapping[str, Any]]) -> Optional['SessionIdentity']:
        if not snapshot:
            return None
        try:
            return cls(snapshot['id'], snapshot.get('first_name', ''), snapshot['role'])
        except (KeyError, TypeError, ValueError):
            return None

    def to_snapshot(self) -> dict:
        return {'id': self.id, 'first_name': self.first_name, 'role': self.role}

    def get_id(self):
        """Required by Flask-Login - return user identifier"""
        return str(self.id)

    def __repr__(self):
        return f"<SessionIdentity {self.id} {self.role}>"
