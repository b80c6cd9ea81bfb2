from __future__ import annotations

from functools import lru_cache
from typing import Any

from google.cloud import run_v2

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

# Shared Client Registry (Lazy-loaded and cached)


@lru_cache(maxsize=1)
def get_services_client() -> Any:
    return run_v2.ServicesClient()


@lru_cache(maxsize=16)
def get_domains_client(location: str) -> Any:
    # Domain mappings only exist on the regional v1 endpoint
    from googleapiclient import discovery

    return discovery.build(
        "run",
        "v1",
        cache_discovery=False,
        client_options={"api_endpoint": f"https://{location}-run.googleapis.com"},
    )


def get_timed_http(timeout: float) -> Any:
    """Authorized transport for discovery requests that must finish within ``timeout`` seconds."""
    import google.auth
    import google_auth_httplib2
    import httplib2

    credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
    return google_auth_httplib2.AuthorizedHttp(
        credentials, http=httplib2.Http(timeout=timeout)
    )
