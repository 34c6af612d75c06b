#======================================================================================
#
# Bearer-token authentication for the JSON API
#
#=======================================================================================
from datetime import datetime, timedelta, timezone
from functools import wraps
import logging

import jwt
from flask import current_app, g, request
from flask_login import current_user

from extensions import db, login_manager
from models import User
from commissions.errors import error_response

logger = logging.getLogger(__name__)

_jwks_clients = {}


def _jwks_client(domain):
    client = _jwks_clients.get(domain)
    if client is None:
        client = jwt.PyJWKClient(f"https://{domain}/.well-known/jwks.json")
        _jwks_clients[domain] = client
    return client


def _audience():
    config = current_app.config
    return config.get("AUTH0_AUDIENCE") or config.get("AUTH0_CLIENT_ID")


def decode_token(token):
    """
    Verify a bearer token and return its claims.
    - With AUTH0_DOMAIN: RS256 against the tenant JWKS, audience + issuer checked.
    - Without: HS256 signed with JWT_SECRET_KEY (or SECRET_KEY).
    """
    config = current_app.config
    domain = config.get("AUTH0_DOMAIN")
    audience = _audience()

    if domain:
        signing_key = _jwks_client(domain).get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=audience,
            issuer=f"https://{domain}/",
        )

    secret = config.get("JWT_SECRET_KEY") or config.get("SECRET_KEY")
    if not secret:
        raise jwt.InvalidTokenError("No token signing secret configured")

    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        audience=audience,
        options={"verify_aud": bool(audience)},
    )


def create_access_token(subject, expires_in=timedelta(hours=1), **claims):
    """Issue an HS256 token for local development."""
    config = current_app.config
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + expires_in, **claims}
    audience = _audience()
    if audience:
        payload.setdefault("aud", audience)
    return jwt.encode(payload, config.get("JWT_SECRET_KEY") or config.get("SECRET_KEY"), algorithm="HS256")


# ------------------------------------------------------------------------------------------
# Flask-Login loaders
# ------------------------------------------------------------------------------------------
@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    """
    Resolve the caller from the Authorization header.
    g.auth holds the verified identity even when the caller has no user record.
    """
    g.auth = None
    g.auth_error = None

    header = req.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        g.auth_error = ("Missing or invalid authorization header", None)
        return None

    token = header.split(" ", 1)[1].strip()
    try:
        claims = decode_token(token)
    except jwt.PyJWTError as e:
        logger.warning(f"JWT verification error: {e}")
        g.auth_error = ("Invalid token", str(e))
        return None

    subject = claims.get("sub")
    if not subject:
        g.auth_error = ("Invalid token", "Token has no subject")
        return None

    g.auth = {"user_id": subject, "token": claims}
    return User.query.filter_by(auth0_id=subject).first()


def caller_identity():
    auth = g.get("auth")
    return auth["user_id"] if auth else None


# ------------------------------------------------------------------------------------------
# Route guards
# ------------------------------------------------------------------------------------------
def auth_required(f):
    """Reject the request with 401 unless it carries a valid bearer token."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Touching current_user runs the request loader once per request
        current_user._get_current_object()

        if g.get("auth") is None:
            message, error = g.get("auth_error") or ("Missing or invalid authorization header", None)
            return error_response(message, 401, error)

        return f(*args, **kwargs)

    return decorated_function


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - Requires a valid bearer token.
    - The caller must have a user record with the 'admin' role, else 403.
    """
    @wraps(f)
    @auth_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            return error_response("Insufficient permissions", 403)

        return f(*args, **kwargs)

    return decorated_function
