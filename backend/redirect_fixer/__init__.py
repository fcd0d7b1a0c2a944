"""Redirect Fixer backend package."""
