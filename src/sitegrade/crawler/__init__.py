"""
Resource fetching with destination policy enforcement and an outbound budget.
"""

from .destination_policy import DestinationPolicy, PolicyResolver
from .http_client import FetchedPage, FetchedResource, HttpClient
from .rate_limiter import OutboundBudget

__all__ = [
    "DestinationPolicy",
    "FetchedPage",
    "FetchedResource",
    "HttpClient",
    "OutboundBudget",
    "PolicyResolver",
]
