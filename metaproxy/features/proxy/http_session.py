"""
HTTP session setup for the origin and metadata fetches (connection pooling, no retry).
"""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# Connect/read seconds; overridable through ORIGIN_TIMEOUT and METADATA_TIMEOUT
DEFAULT_ORIGIN_TIMEOUT = (75, 300)
DEFAULT_METADATA_TIMEOUT = (10, 30)


def create_proxy_session() -> requests.Session:
    """Create a requests session tuned for proxy traffic."""
    session = requests.Session()

    # Failures surface to the caller on the first attempt.
    retry_strategy = Retry(total=0, read=False, redirect=False, raise_on_status=False)

    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=20, max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    return session


_SESSION = create_proxy_session()
