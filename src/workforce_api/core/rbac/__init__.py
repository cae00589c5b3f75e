"""Access-control primitives shared across features."""

from .types import AppRole, ModuleKey, RoleDef, ScopeType

__all__ = ["AppRole", "ModuleKey", "RoleDef", "ScopeType"]
