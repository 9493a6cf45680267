"""
Tests for authentication module.

Tests cover:
- Anonymous owner when auth is disabled
- Login flow (mocked streamlit components)
- Session id for audit correlation
- Audit logging for auth events

Note: These tests mock streamlit components since they require browser context.
"""

from unittest.mock import MagicMock, patch

import pytest


class MockSessionState(dict):
    """Dict subclass that allows attribute assignment for mocking st.session_state."""
    pass


class StopExecution(Exception):
    """Exception to simulate st.stop() behavior."""
    pass


# ============================================================================
# AUTH DISABLED TESTS
# ============================================================================


def test_require_auth_returns_anonymous_owner_when_disabled():
    """Test that require_auth returns the configured anonymous owner."""
    with patch("blogapi.auth.settings") as mock_settings:
        mock_settings.auth_enabled = False
        mock_settings.anonymous_owner = "guest"

        from blogapi.auth import require_auth

        assert require_auth() == "guest"


def test_render_logout_does_nothing_when_disabled():
    """Test that render_logout is a no-op when auth is disabled."""
    with patch("blogapi.auth.settings") as mock_settings, \
         patch("blogapi.auth.get_authenticator") as mock_get_auth:
        mock_settings.auth_enabled = False

        from blogapi.auth import render_logout

        render_logout()

        mock_get_auth.assert_not_called()


# ============================================================================
# AUTH ENABLED TESTS (with mocked streamlit)
# ============================================================================


@pytest.fixture
def mock_streamlit():
    """Mock streamlit components for testing."""
    with patch("blogapi.auth.st") as mock_st:
        mock_st.session_state = MockSessionState()
        mock_st.secrets = {
            "auth": {
                "cookie_name": "blog_cookie",
                "cookie_key": "test_key_32_chars_for_testing!!",
                "cookie_expiry_days": 1,
                "credentials": {
                    "usernames": {
                        "alice": {
                            "name": "Alice",
                            "password": "$2b$12$hashedpassword",
                        }
                    }
                },
            }
        }
        mock_st.stop.side_effect = StopExecution()
        yield mock_st


@pytest.fixture
def mock_settings_enabled():
    """Mock settings with auth enabled."""
    with patch("blogapi.auth.settings") as mock_settings:
        mock_settings.auth_enabled = True
        yield mock_settings


def test_get_session_id_is_stable(mock_streamlit):
    """Test that the session id is generated once per session."""
    from blogapi.auth import get_session_id

    first = get_session_id()
    second = get_session_id()

    assert first == second
    assert len(first) == 16
    assert mock_streamlit.session_state["session_id"] == first


def test_get_authenticator_copies_credentials(mock_streamlit):
    """Test that credentials are copied out of read-only secrets."""
    with patch("blogapi.auth.stauth.Authenticate") as MockAuth:
        from blogapi.auth import get_authenticator

        auth = get_authenticator()

        MockAuth.assert_called_once()
        credentials = MockAuth.call_args.kwargs["credentials"]
        assert credentials["usernames"]["alice"]["email"] == ""
        assert credentials is not mock_streamlit.secrets["auth"]["credentials"]
        assert mock_streamlit.session_state["authenticator"] is auth


def test_get_authenticator_reused(mock_streamlit):
    """Test that the authenticator is created once per session."""
    with patch("blogapi.auth.stauth.Authenticate") as MockAuth:
        from blogapi.auth import get_authenticator

        assert get_authenticator() is get_authenticator()
        MockAuth.assert_called_once()


def test_require_auth_stops_before_login(mock_streamlit, mock_settings_enabled):
    """Test that require_auth stops while no login was attempted."""
    with patch("blogapi.auth.stauth.Authenticate"):
        from blogapi.auth import require_auth

        with pytest.raises(StopExecution):
            require_auth()

        mock_streamlit.info.assert_called()


def test_require_auth_on_failed_login(mock_streamlit, mock_settings_enabled):
    """Test behavior when authentication_status is False (failed login)."""
    with patch("blogapi.auth.get_authenticator"), \
         patch("blogapi.auth.log_auth") as mock_log:
        mock_streamlit.session_state["session_id"] = "test_session"
        mock_streamlit.session_state["authentication_status"] = False

        from blogapi.auth import require_auth

        with pytest.raises(StopExecution):
            require_auth()

        mock_streamlit.error.assert_called()
        mock_log.assert_called_once()
        assert mock_log.call_args[0][1] == "test_session"
        assert mock_log.call_args[0][2] == "login_failed"


def test_require_auth_returns_owner_on_success(mock_streamlit, mock_settings_enabled):
    """Test that the username becomes the owner id."""
    with patch("blogapi.auth.get_authenticator"), \
         patch("blogapi.auth.log_auth") as mock_log:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "alice"

        from blogapi.auth import require_auth

        assert require_auth() == "alice"
        mock_log.assert_called_once()
        assert mock_log.call_args[0][2] == "login_success"
        assert "alice" not in mock_log.call_args[0]


def test_require_auth_skips_log_when_already_logged(mock_streamlit, mock_settings_enabled):
    """Test that repeated auth checks don't re-log (cookie restore scenario)."""
    with patch("blogapi.auth.get_authenticator"), \
         patch("blogapi.auth.log_auth") as mock_log:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "alice"
        mock_streamlit.session_state["auth_logged"] = True

        from blogapi.auth import require_auth

        assert require_auth() == "alice"
        mock_log.assert_not_called()


def test_render_logout_when_enabled(mock_streamlit, mock_settings_enabled):
    """Test that the logout button goes in the sidebar."""
    with patch("blogapi.auth.get_authenticator") as mock_get_auth:
        from blogapi.auth import render_logout

        render_logout()

        mock_get_auth.return_value.logout.assert_called_once()
        assert mock_get_auth.return_value.logout.call_args.kwargs["location"] == "sidebar"
