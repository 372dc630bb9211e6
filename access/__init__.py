"""Roles, permissions, bearer tokens and request authorization."""
