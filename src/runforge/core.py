from google.api_core.exceptions import Aborted
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

# Retry configuration for IAM read-modify-write cycles.
# Only etag conflicts are retried; every other rejection is surfaced.
# usage: @retry(**ETAG_RETRY_CONFIG)
ETAG_RETRY_CONFIG = {
    "stop": stop_after_attempt(5),
    "wait": wait_exponential(multiplier=1, min=1, max=10),
    "retry": retry_if_exception_type(Aborted),
    "reraise": True,
}

# Annotations written by the control plane after creation.
# These never trigger an update.
IGNORED_ANNOTATIONS = frozenset(
    {
        "run.googleapis.com/client-name",
        "run.googleapis.com/client-version",
        "run.googleapis.com/operation-id",
        "run.googleapis.com/creator",
        "run.googleapis.com/lastModifier",
        "serving.knative.dev/creator",
        "serving.knative.dev/lastModifier",
        "client.knative.dev/user-image",
    }
)

# Free-form maps compared as a whole rather than key by key
FREEFORM_MAPS = frozenset({"labels", "annotations"})

INVOKER_ROLE = "roles/run.invoker"

# Principal prefixes accepted in an IAM member, as in "user:a@example.com"
MEMBER_KINDS = frozenset(
    {"user", "group", "serviceAccount", "domain", "principal", "principalSet", "deleted"}
)
# Members that carry no prefix
SPECIAL_MEMBERS = frozenset({"allUsers", "allAuthenticatedUsers"})

DEFAULT_INGRESS = "INGRESS_TRAFFIC_ALL"
DEFAULT_LAUNCH_STAGE = "GA"
DEFAULT_CERTIFICATE_MODE = "AUTOMATIC"

TRAFFIC_LATEST = "TRAFFIC_TARGET_ALLOCATION_TYPE_LATEST"
TRAFFIC_REVISION = "TRAFFIC_TARGET_ALLOCATION_TYPE_REVISION"

# Number of dependent bindings applied in parallel
DEFAULT_CONCURRENCY = 8
