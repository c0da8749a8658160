from __future__ import annotations

import os
from dataclasses import dataclass


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) not in ("0", "false", "False")


@dataclass(frozen=True)
class Settings:
    # Auth0 (token validation)
    auth0_domain: str = os.environ.get("AUTH0_DOMAIN", "")
    auth0_audience: str = os.environ.get("AUTH0_AUDIENCE", "")

    # Auth0 management API (identity store)
    auth0_mgt_domain: str = os.environ.get("AUTH0_MGT_DOMAIN", "")
    auth0_mgt_client_id: str = os.environ.get("AUTH0_MGT_CLIENT_ID", "")
    auth0_mgt_client_secret: str = os.environ.get("AUTH0_MGT_CLIENT_SECRET", "")
    auth0_user_connection: str = os.environ.get("AUTH0_USER_CONNECTION", "Username-Password-Authentication")
    auth0_http_timeout_seconds: int = int(os.environ.get("AUTH0_HTTP_TIMEOUT_SECONDS", "10"))

    web_host: str = os.environ.get("WEB_HOST", "localhost:3000")

    # Stripe, one account per flavour
    stripe_secret_key_membfee: str = os.environ.get("STRIPE_SECRET_KEY_MEMBFEE", "")
    stripe_secret_key_housecard: str = os.environ.get("STRIPE_SECRET_KEY_HOUSECARD", "")
    stripe_success_url: str = os.environ.get("STRIPE_SUCCESS_URL", "")
    stripe_cancel_url: str = os.environ.get("STRIPE_CANCEL_URL", "")

    # Fees
    default_currency: str = os.environ.get("DEFAULT_CURRENCY", "SEK").upper()
    reference_timezone: str = os.environ.get("REFERENCE_TIMEZONE", "UTC")

    metrics_enabled: bool = _flag("METRICS_ENABLED", "1")
    audit_log_enabled: bool = _flag("AUDIT_LOG_ENABLED", "1")
    log_level: str = os.environ.get("LOG_LEVEL", "INFO").upper()


S = Settings()
