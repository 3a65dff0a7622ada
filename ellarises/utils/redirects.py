"""In-app redirect targets for the login return-to and logout flows."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from flask import current_app
from werkzeug.exceptions import HTTPException
from werkzeug.routing import RequestRedirect

# Absolute in-app paths only: no scheme/host, no '//' and no '..'
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/?=&%+]*$")
MAX_INAPP_REDIRECT_LEN = 512

AUTH_PAGES = ('/login', '/register')


def safe_redirect_target(target: Optional[str], host_url: Optional[str] = None) -> Optional[str]:
    """Return an in-app path for `target`, or None if it points elsewhere.

    Full URLs are accepted only when they belong to `host_url` (the request's
    own origin), and are reduced to path + query.
    """
    if not target or len(target) > MAX_INAPP_REDIRECT_LEN:
        return None
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        if not host_url:
            return None
        origin = urlsplit(host_url)
        if (parts.scheme, parts.netloc) != (origin.scheme, origin.netloc):
            return None
        target = parts.path + (f"?{parts.query}" if parts.query else '')
    if not INAPP_PATH_PATTERN.match(target):
        return None
    return target


def is_auth_page(path: str) -> bool:
    return urlsplit(path).path in AUTH_PAGES


def has_get_route(path: str) -> bool:
    """True when `path` resolves to a page that can be opened with GET."""
    try:
        current_app.url_map.bind('localhost').match(urlsplit(path).path, method='GET')
        return True
    except RequestRedirect:
        return True
    except HTTPException:
        return False


def return_to_target(target: Optional[str], host_url: Optional[str] = None) -> Optional[str]:
    """A safe in-app page to land on after login, or None."""
    target = safe_redirect_target(target, host_url)
    if not target or is_auth_page(target) or not has_get_route(target):
        return None
    return target
