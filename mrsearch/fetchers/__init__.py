"""Fetchers for GitLab merge request resources."""

from . import approvals, merge_requests

__all__ = [
    "approvals",
    "merge_requests",
]
