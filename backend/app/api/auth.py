"""Utente autenticato dal bearer token di Supabase Auth"""
import base64
import json
import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token_claims(token: str) -> Dict[str, Any]:
    """
    Claims del JWT, senza verifica della firma.

    La firma è verificata da Supabase a monte (gateway e PostgREST): qui serve
    solo il claim sub per sapere chi opera sulle fatture.
    """
    segments = token.split(".")
    if len(segments) != 3:
        raise ValueError("Il token non ha tre segmenti")
    payload = segments[1]
    payload += "=" * (-len(payload) % 4)
    claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")).decode("utf-8"))
    if not isinstance(claims, dict):
        raise ValueError("Payload del token non valido")
    return claims


def get_current_auth_user_id(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> UUID:
    """Dipendenza dei router di fatturazione: id utente Supabase dal claim sub."""
    if not authorization:
        raise _unauthorized("Token mancante")
    if not authorization.startswith(BEARER_PREFIX):
        raise _unauthorized("Formato Authorization non valido")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise _unauthorized("Token mancante")

    try:
        claims = decode_token_claims(token)
        return UUID(str(claims["sub"]))
    except (KeyError, ValueError) as exc:
        # JSONDecodeError, binascii.Error ed errori di codifica sono ValueError
        logger.warning("Token rifiutato: %s", exc)
        raise _unauthorized("Token non valido") from exc
