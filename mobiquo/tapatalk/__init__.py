"""Tapatalk session layer: authentication and forum operations."""

from mobiquo.tapatalk.auth import AuthGuard, is_auth_fault
from mobiquo.tapatalk.client import TapatalkClient
from mobiquo.tapatalk.models import LoginResult

__all__ = ["AuthGuard", "LoginResult", "TapatalkClient", "is_auth_fault"]
