"""REST collaborator used to obtain a user ID before joining."""
from .client import UsersClient

__all__ = ["UsersClient"]
