"""
Authentication Module

Resolves the session token sent as the auth-token cookie or a Bearer
header against the configured API users.
"""

import logging
import os
from pathlib import Path

import yaml
from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel

logger = logging.getLogger(__name__)

AUTH_COOKIE = "auth-token"


class User(BaseModel):
    """Authenticated user model."""

    id: str
    name: str
    email: str | None = None
    role: str
    permissions: list[str]


DEV_USER = User(id="dev", name="Developer", role="admin", permissions=["*"])


def config_dir() -> Path:
    return Path(os.getenv("CONFIG_DIR", Path(__file__).parent.parent.parent / "config"))


class AuthConfig:
    """Authentication configuration loaded from api_users.yaml."""

    def __init__(self, config_path: Path | str | None = None):
        """Initialize auth config.

        Args:
            config_path: Path to api_users.yaml
        """
        if config_path is None:
            config_path = config_dir() / "api_users.yaml"

        self.config_path = Path(config_path)
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML."""
        if self.config_path.exists():
            with open(self.config_path) as f:
                self.config = yaml.safe_load(f) or {}
        else:
            logger.warning(f"{self.config_path} not found, using development users")
            # Default config for development
            self.config = {
                "users": [
                    {
                        "id": "dev",
                        "token": "dev-token",
                        "name": "Developer",
                        "role": "admin",
                    }
                ],
                "permissions": {
                    "admin": ["*"],
                    "accountant": ["view", "edit", "export"],
                    "viewer": ["view"],
                },
            }

    def get_user_by_token(self, token: str) -> User | None:
        """Get user by session token.

        Args:
            token: Bearer token or auth-token cookie value

        Returns:
            User object or None if not found
        """
        for user_data in self.config.get("users", []):
            if str(user_data.get("token")) == token:
                role = user_data.get("role", "viewer")
                permissions = self.config.get("permissions", {}).get(role, ["view"])

                return User(
                    id=str(user_data.get("id", token)),
                    name=user_data.get("name", "Unknown"),
                    email=user_data.get("email"),
                    role=role,
                    permissions=permissions,
                )

        return None

    def has_permission(self, user: User, permission: str) -> bool:
        """Check if user has a specific permission."""
        if "*" in user.permissions:
            return True

        return permission in user.permissions


# Global auth config instance
auth_config = AuthConfig()


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return None


async def get_current_user(request: Request) -> User:
    """Get current authenticated user from the request.

    Args:
        request: Incoming request

    Returns:
        Authenticated User

    Raises:
        HTTPException: If no valid credential is present
    """
    token = _extract_token(request)

    # Development mode: requests without credentials run as the dev user
    if token is None and os.getenv("ENVIRONMENT", "development") == "development":
        return DEV_USER

    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    user = auth_config.get_user_by_token(token)

    if not user:
        logger.info("Rejected request with unknown token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return user


def require_permission(permission: str):
    """Dependency factory for permission checks.

    Args:
        permission: Required permission

    Returns:
        Dependency function
    """
    async def check_permission(user: User = Depends(get_current_user)) -> User:
        if not auth_config.has_permission(user, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{permission}' required",
            )
        return user

    return check_permission


# Common permission dependencies
require_edit = require_permission("edit")
require_admin = require_permission("admin")
