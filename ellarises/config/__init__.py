"""
Ella Rises Configuration Module
"""

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

# Resources whose list page may be opened to anonymous visitors
LISTABLE_RESOURCES = frozenset({'participants', 'events', 'surveys', 'milestones', 'donations'})


@dataclass
class ServerConfig:
    """Server configuration settings"""
    host: str = '0.0.0.0'
    port: int = 5000
    debug: bool = False
    secret_key: str = 'dev-secret-key-change-in-production'

    # Security settings
    session_cookie_secure: bool = False
    session_cookie_httponly: bool = True
    session_cookie_samesite: str = 'Lax'
    # Staff sessions last a working day unless overridden
    session_timeout_seconds: int = 28800
    force_https: bool = False
    strict_transport_security: bool = False

    max_content_length: int = 2 * 1024 * 1024  # 2MB, forms only


@dataclass
class DatabaseConfig:
    """Relational store settings"""
    url: str = 'sqlite:///./ellarises.db'
    echo: bool = False
    auto_create_schema: bool = True


@dataclass
class AppConfig:
    """Behaviour settings shared by the resource blueprints"""
    page_size: int = 10
    bcrypt_rounds: int = 10
    public_listings: FrozenSet[str] = field(default_factory=frozenset)
    login_max_attempts: int = 5
    login_lockout_seconds: int = 15 * 60
    sentry_dsn: Optional[str] = None


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def parse_public_listings(raw: Optional[str]) -> FrozenSet[str]:
    """Parse a comma separated list of resource names, ignoring unknown ones.

    `users` is never listable without the manager role, so it is dropped here
    even when configured.
    """
    if not raw:
        return frozenset()
    names = {part.strip().lower() for part in raw.split(',')}
    return frozenset(name for name in names if name in LISTABLE_RESOURCES)


def get_server_config() -> ServerConfig:
    """Get server configuration from environment or defaults"""
    session_timeout_env = os.getenv('SESSION_TIMEOUT_SECONDS')
    timeout_seconds = int(session_timeout_env) if session_timeout_env else 28800

    return ServerConfig(
        host=os.getenv('FLASK_HOST', '0.0.0.0'),
        port=int(os.getenv('FLASK_PORT', 5000)),
        debug=_env_flag('FLASK_DEBUG', 'False'),
        secret_key=os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production'),
        session_cookie_secure=_env_flag('SESSION_COOKIE_SECURE', 'False'),
        force_https=_env_flag('FORCE_HTTPS', 'False'),
        strict_transport_security=_env_flag('STRICT_TRANSPORT_SECURITY', 'False'),
        session_cookie_samesite=os.getenv('SESSION_COOKIE_SAMESITE', 'Lax'),
        session_timeout_seconds=timeout_seconds,
    )


def get_database_config() -> DatabaseConfig:
    """Get database configuration from environment or defaults"""
    return DatabaseConfig(
        url=os.getenv('DATABASE_URL', 'sqlite:///./ellarises.db'),
        echo=_env_flag('DATABASE_ECHO', 'False'),
        auto_create_schema=_env_flag('AUTO_CREATE_SCHEMA', 'True'),
    )


def get_app_config() -> AppConfig:
    """Get application behaviour settings from environment or defaults"""
    return AppConfig(
        page_size=max(1, int(os.getenv('PAGE_SIZE', 10))),
        bcrypt_rounds=int(os.getenv('BCRYPT_ROUNDS', 10)),
        public_listings=parse_public_listings(os.getenv('ELLARISES_PUBLIC_LISTINGS')),
        login_max_attempts=int(os.getenv('LOGIN_MAX_ATTEMPTS', 5)),
        login_lockout_seconds=int(os.getenv('LOGIN_LOCKOUT_SECONDS', 15 * 60)),
        sentry_dsn=os.getenv('SENTRY_DSN'),
    )
