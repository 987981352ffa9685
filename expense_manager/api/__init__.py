"""HTTP session bridge and JSON views."""

from expense_manager.api.app import create_app
from expense_manager.api.dependencies import get_current_user

__all__ = ["create_app", "get_current_user"]
