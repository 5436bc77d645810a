"""
Client-side collaborators of the transaction engine.
"""

from .email_client import EmailDispatcher, HttpEmailDispatcher

__all__ = ["EmailDispatcher", "HttpEmailDispatcher"]
