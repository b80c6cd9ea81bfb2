from collections.abc import Iterator
from concurrent import futures
from contextlib import contextmanager

from google.api_core.exceptions import GoogleAPICallError
from googleapiclient.errors import HttpError

from ..exceptions import RemoteRejected


@contextmanager
def translate_errors(resource: str) -> Iterator[None]:
    """Re-raises control plane failures as RemoteRejected."""
    try:
        yield
    except GoogleAPICallError as e:
        raise RemoteRejected(e.message or str(e), resource) from e
    except HttpError as e:
        raise RemoteRejected(e.reason or str(e), resource) from e
    except (futures.TimeoutError, TimeoutError) as e:
        raise RemoteRejected("operation timed out", resource) from e
