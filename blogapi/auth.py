"""
Login gate built on streamlit-authenticator.

require_auth() returns the owner id every post mutation is checked
against: the logged-in username, or settings.anonymous_owner when
AUTH_ENABLED is off (single-user local use).

Credentials (bcrypt hashes) and cookie settings come from the [auth]
table of .streamlit/secrets.toml. The audit trail only receives the
session id and the action, never the username.
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping

import streamlit as st
import streamlit_authenticator as stauth

from .audit_log import generate_request_id, log_auth
from .settings import settings

_AUTHENTICATOR_KEY = "authenticator"
_LOGIN_AUDITED_KEY = "auth_logged"


def get_session_id() -> str:
    """Anonymous per-browser-session id used to correlate audit events."""
    if "session_id" not in st.session_state:
        st.session_state["session_id"] = uuid.uuid4().hex[:16]
    return st.session_state["session_id"]


def _writable_credentials(users: Mapping[str, Any]) -> dict[str, Any]:
    # st.secrets is read-only and the authenticator records failed attempts on it
    return {
        "usernames": {
            name: {
                "email": user.get("email", ""),
                "name": user["name"],
                "password": user["password"],
            }
            for name, user in users.items()
        }
    }


def get_authenticator() -> stauth.Authenticate:
    """One authenticator per browser session, shared by every page."""
    authenticator = st.session_state.get(_AUTHENTICATOR_KEY)
    if authenticator is None:
        config = st.secrets["auth"]
        authenticator = stauth.Authenticate(
            credentials=_writable_credentials(config["credentials"]["usernames"]),
            cookie_name=config["cookie_name"],
            cookie_key=config["cookie_key"],
            cookie_expiry_days=config["cookie_expiry_days"],
        )
        st.session_state[_AUTHENTICATOR_KEY] = authenticator
    return authenticator


def require_auth() -> str:
    """
    Return the caller's owner id, or render the login form and stop the page.
    """
    if not settings.auth_enabled:
        return settings.anonymous_owner

    get_authenticator().login(location="main")
    state = st.session_state
    session_id = get_session_id()

    if state.get("authentication_status") is False:
        log_auth(generate_request_id(), session_id, "login_failed")
        st.error("Nom d'utilisateur ou mot de passe incorrect")
        st.stop()
    if state.get("authentication_status") is None:
        st.info("Veuillez vous connecter pour gérer vos articles")
        st.stop()

    # A cookie restore re-runs this on every page; audit the login once
    if not state.get(_LOGIN_AUDITED_KEY):
        log_auth(generate_request_id(), session_id, "login_success")
        state[_LOGIN_AUDITED_KEY] = True

    return state.get("username")


def render_logout() -> None:
    """Sidebar logout button (nothing when auth is disabled)."""
    if settings.auth_enabled:
        get_authenticator().logout("Déconnexion", location="sidebar")
