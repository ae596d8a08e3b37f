"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the flow
controller do the work; these only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """A registered identity.

    email is the unique login identity and never changes after creation.
    password_hash is a bcrypt hash; the plaintext is never stored.

    Lockout invariant: is_locked implies login_attempts >= the configured
    threshold (5 by default). Only a password reset clears the lock.
    """

    name: str
    email: str
    password_hash: str
    id: int | None = None
    is_verified: bool = False
    is_locked: bool = False
    login_attempts: int = 0
    created_at: str | None = None


@dataclass
class LoginLogEntry:
    """One sign-in attempt, written once and never updated.

    account_id and name are None when the attempt could not be tied to an
    account. reason is None for successful attempts.
    """

    email: str
    status: str  # "success" or "failed"
    account_id: int | None = None
    name: str | None = None
    client_address: str | None = None
    client_agent: str | None = None
    reason: str | None = None
    id: int | None = None
    created_at: str | None = None
