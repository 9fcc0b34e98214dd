"""
Acting-person dependency for the issuance flow.
"""
from fastapi import Depends, HTTPException, Request, status

from ..config import Settings, get_settings
from ..core.security import Actor, InvalidActorToken, decode_actor_token


def get_current_actor(request: Request, settings: Settings = Depends(get_settings)) -> Actor:
    """
    Resolve the simulated person from ``Authorization: Bearer <actorToken>``.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Simulation not started; call start-simulation first",
        )

    try:
        actor = decode_actor_token(auth_header[7:], settings)
    except InvalidActorToken as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    request.state.actor_person_id = actor.person_id
    return actor
