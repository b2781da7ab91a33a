"""HTTP access to the nuPortal API.

- HttpGateway: one request/response cycle with error classification
- ApiClient: authenticated calls for endpoint wrappers
"""

from .gateway import HttpGateway, RequestMetrics
from .api_client import ApiClient

__all__ = ["HttpGateway", "RequestMetrics", "ApiClient"]
