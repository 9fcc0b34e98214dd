"""
Credential id (CID) extraction from a claimed credential token.

The wallet hands back the claimed credential as a JWT whose ``jti`` is a
URL ending in ``/credential/<CID>``. The CID is what revocation needs.
The signature is not checked here: the token came straight from the
wallet over an authenticated channel and we only read an identifier.
"""
import re
from typing import Optional

from jose import jwt, JWTError

CID_PATTERN = re.compile(r"/credential/([A-Za-z0-9\-]+)$")


def extract_cid(token: Optional[str]) -> Optional[str]:
    """
    Return the CID embedded in the token's ``jti`` claim.

    Returns None when the token is empty or undecodable, has no string
    ``jti``, or the ``jti`` does not end in ``/credential/<id>``.
    """
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None

    jti = claims.get("jti")
    if not isinstance(jti, str):
        return None

    match = CID_PATTERN.search(jti)
    return match.group(1) if match else None
