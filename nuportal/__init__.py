"""Client for the nuPortal REST API with persistent OAuth2 token caching."""

__version__ = "0.1.0"
