# Overview: Request identity boundary for API routes.

from functools import wraps
from flask import current_app, request, g

from .errors import Unauthenticated


def resolve_identity(token: str) -> str | None:
    """
    Map a bearer token to an opaque user id.

    The token is issued and verified by the upstream identity provider; we
    only translate it. IDENTITY_RESOLVER (a callable) wins over the static
    API_TOKENS mapping.
    """
    resolver = current_app.config.get("IDENTITY_RESOLVER")
    if resolver is not None:
        return resolver(token)
    return (current_app.config.get("API_TOKENS") or {}).get(token)


def current_user_id() -> str:
    """The caller identity established by @require_auth for this request."""
    user_id = getattr(g, "current_user_id", None)
    if user_id is None:
        raise Unauthenticated()
    return user_id


def require_auth(f):
    """
    Require an authenticated caller.

    Sets g.current_user_id for the duration of the request. Services never
    read g; routes pass the id down explicitly as actor_id.

    Raises Unauthenticated (401) if:
    - No Authorization header
    - Token not recognised by the resolver
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            raise Unauthenticated()

        token = auth_header.split(" ", 1)[1].strip()
        user_id = resolve_identity(token) if token else None

        if not user_id:
            raise Unauthenticated("Invalid or expired token")

        g.current_user_id = str(user_id)

        return f(*args, **kwargs)

    return decorated_function
