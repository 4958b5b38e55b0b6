# API clients
from .api_client import (
    ClubApiClient,
    ApiError,
    UnauthorizedError,
    TEST_ENDPOINTS,
)
