"""HTTP middleware for the control plane"""
from .auth import RetrievalTokenGuard

__all__ = ['RetrievalTokenGuard']
