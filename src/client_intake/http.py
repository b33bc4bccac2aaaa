from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# Seconds, per outbound call.
DEFAULT_TIMEOUT = 20


def session_without_retries() -> requests.Session:
    """Every outbound call is attempted once; failures surface to the caller."""
    s = requests.Session()
    retries = Retry(total=0, raise_on_status=False)
    s.mount("https://", HTTPAdapter(max_retries=retries))
    s.mount("http://", HTTPAdapter(max_retries=retries))
    return s
