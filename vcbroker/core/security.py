"""
Actor tokens for the issuance simulation.

A simulated person "acts" across several requests (start, request, poll).
Instead of a server-side session the start call hands back a short-lived
signed token whose subject is the person id.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from ..config import Settings

ACTOR_AUDIENCE = "vcbroker-issuance"
ACTOR_ISSUER = "vcbroker"


class InvalidActorToken(Exception):
    """Actor token missing, expired, or tampered with."""


@dataclass(frozen=True)
class Actor:
    person_id: int


def create_actor_token(person_id: int, settings: Settings, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    payload = {
        "sub": str(person_id),
        "aud": ACTOR_AUDIENCE,
        "iss": ACTOR_ISSUER,
        "iat": now,
        "exp": now + timedelta(minutes=settings.actor_token_ttl_minutes),
    }
    return jwt.encode(payload, settings.actor_token_secret, algorithm=settings.actor_token_algorithm)


def decode_actor_token(token: str, settings: Settings) -> Actor:
    try:
        payload = jwt.decode(
            token,
            settings.actor_token_secret,
            algorithms=[settings.actor_token_algorithm],
            audience=ACTOR_AUDIENCE,
            issuer=ACTOR_ISSUER,
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidActorToken("Actor token has expired") from e
    except JWTError as e:
        raise InvalidActorToken("Invalid actor token") from e

    subject = payload.get("sub")
    try:
        return Actor(person_id=int(subject))
    except (TypeError, ValueError) as e:
        raise InvalidActorToken("Actor token has no person subject") from e
