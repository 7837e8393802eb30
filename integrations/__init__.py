"""
Provider adapters for mail and calendar APIs.

Each adapter takes a live ``ProviderClient`` and returns plain dicts in a
provider-neutral shape; callers never pass a ``SimulatedClient`` here.
"""

import httpx
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

# Everything a provider call can raise that the services treat as an upstream failure.
PROVIDER_ERRORS = (httpx.HTTPError, HttpError, GoogleAuthError)
