"""
Client-side session store for the CMS API.

Holds the current user and access token, persists them to a JSON file,
re-validates them on start-up and retries a request once after a 401 by
refreshing the access token.

    store = SessionStore("https://cms.example.com/api/", path="~/.cms-session.json")
    store.init_auth()
    if not store.is_authenticated:
        store.login("ana@example.com", "secret")
    posts = store.request("GET", "posts/").json()
"""
import json
import logging
from pathlib import Path
from urllib.parse import urljoin

import requests

from .conf import DEFAULTS

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, base_url, path=None, session=None, timeout=10,
                 refresh_cookie_name=DEFAULTS["REFRESH_COOKIE_NAME"]):
        self.base_url = base_url.rstrip("/") + "/"
        self.path = Path(path).expanduser() if path else None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.refresh_cookie_name = refresh_cookie_name
        self.user = None
        self.token = None
        self.is_loading = False
        self.load()

    @property
    def is_authenticated(self):
        return self.token is not None and self.user is not None

    def url(self, path):
        return urljoin(self.base_url, path.lstrip("/"))

    def _send(self, method, path, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return self.session.request(method, self.url(path), **kwargs)

    def _set_token(self, token):
        self.token = token
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    def _authenticate(self, path, payload):
        self.is_loading = True
        try:
            response = self._send("POST", path, json=payload)
            response.raise_for_status()
        finally:
            self.is_loading = False
        data = response.json()
        self.user = data["user"]
        self._set_token(data["access"])
        self.save()
        return self.user

    def login(self, email, password):
        """Log in and store the user and access token. Raises ``requests.HTTPError`` on rejection."""
        user = self._authenticate("auth/login/", {"email": email, "password": password})
        logger.info("Logged in as %s", user.get("username"))
        return user

    def register(self, username, email, password, first_name="", last_name=""):
        return self._authenticate("auth/register/", {
            "username": username,
            "email": email,
            "password": password,
            "first_name": first_name,
            "last_name": last_name,
        })

    def logout(self):
        """Clear local state, then tell the server. Server errors do not undo the local logout."""
        self.clear()
        try:
            self._send("POST", "auth/logout/")
        except requests.RequestException as exc:
            logger.warning("Logout request failed: %s", exc)

    def clear(self):
        self.user = None
        self._set_token(None)
        self.session.cookies.set(self.refresh_cookie_name, None)
        self.save()

    def update_user(self, **fields):
        """Merge ``fields`` into the stored user."""
        if self.user is not None:
            self.user = {**self.user, **fields}
            self.save()
        return self.user

    def init_auth(self):
        """Validate a restored token, falling back to a refresh."""
        if self.token:
            try:
                response = self._send("GET", "auth/me/")
            except requests.RequestException as exc:
                logger.warning("Could not validate stored token: %s", exc)
                return self.refresh_token()
            if response.ok:
                self.user = response.json()["user"]
                self.save()
                return True
        return self.refresh_token()

    def refresh_token(self):
        """
        Exchange the refresh cookie for a new access token.

        Returns True on success. On failure the session is cleared.
        """
        try:
            response = self._send("POST", "auth/refresh/")
            if response.ok:
                self._set_token(response.json()["access"])
                me = self._send("GET", "auth/me/")
                if me.ok:
                    self.user = me.json()["user"]
                    self.save()
                    return True
        except requests.RequestException as exc:
            logger.warning("Token refresh failed: %s", exc)
        logger.info("Session expired, clearing stored credentials")
        self.clear()
        return False

    def request(self, method, path, **kwargs):
        """Send an API request, refreshing the token and retrying once on 401."""
        response = self._send(method, path, **kwargs)
        if response.status_code == 401 and self.refresh_token():
            response = self._send(method, path, **kwargs)
        return response

    def save(self):
        if self.path is None:
            return
        state = {
            "user": self.user,
            "token": self.token,
            "refresh_token": self.session.cookies.get(self.refresh_cookie_name),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state))

    def load(self):
        if self.path is None or not self.path.exists():
            return
        try:
            state = json.loads(self.path.read_text())
        except ValueError:
            logger.warning("Ignoring unreadable session file %s", self.path)
            return
        self.user = state.get("user")
        self._set_token(state.get("token"))
        if state.get("refresh_token"):
            self.session.cookies.set(self.refresh_cookie_name, state["refresh_token"])
