from .base_client import (
    BaseAPIClient,
    APIError,
    APIDataError,
    RateLimitError,
    AuthenticationError,
    ServerError,
    ClientError,
)
from .sportsdata_client import SportsDataClient, SportsDataConfig

__all__ = [
    'BaseAPIClient',
    'APIError',
    'APIDataError',
    'RateLimitError',
    'AuthenticationError',
    'ServerError',
    'ClientError',
    'SportsDataClient',
    'SportsDataConfig',
]
