from busdesk.src import openobserve
from busdesk.src.schemas import RequestInfo


def logEvent(requestInfo: RequestInfo, data: dict) -> None:
    """
    Log an event to OpenObserve with request context.

    Args:
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method` and `_path`.
        - Keys in `data` override the request context on collision.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }
    logDetails.update(data)
    openobserve.logEvent(logDetails)
