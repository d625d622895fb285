"""
Roles - Server role membership management.
"""

from .membership import add_server_role_member, remove_server_role_member
from .provider import RoleProvider, ServerRole, ServerRoleHandle, SqlServerRoleProvider

__all__ = [
    "RoleProvider",
    "ServerRole",
    "ServerRoleHandle",
    "SqlServerRoleProvider",
    "add_server_role_member",
    "remove_server_role_member",
]
