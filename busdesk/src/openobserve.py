import json
from requests import Response, Session
from requests.auth import HTTPBasicAuth

from busdesk.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_USERNAME,
)

# Shared HTTP session, keeps the connection to OpenObserve alive between events
httpSession = Session()
httpSession.auth = HTTPBasicAuth(OPENOBSERVE_USERNAME, OPENOBSERVE_PASSWORD)
httpSession.headers.update({"Content-type": "application/json"})

openobserveHost = f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
openobserveURL = f"{openobserveHost}/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"
REQUEST_TIMEOUT = 5  # seconds


def logEvent(eventData: dict) -> Response:
    """
    Ship one audit event to the configured OpenObserve stream.

    Args:
        eventData (dict): The event to store.
            Example:
                {
                    "_method": "POST",
                    "_path": "/dashboard/company/schedule",
                    "_app_id": 1,
                    "id": 12,
                    "bus_id": 3
                }

    Returns:
        requests.Response: The HTTP response returned by OpenObserve.
    """
    payload = json.dumps(eventData, default=str)
    return httpSession.post(openobserveURL, data=payload, timeout=REQUEST_TIMEOUT)
