from typing import List, Type, Dict, Any, Union

from busdesk.src import schemas
from busdesk.src.exceptions import APIException


def makeExceptionResponses(
    exceptions: List[Union[APIException, Type[APIException]]],
) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation from a list of API exceptions.

    Exceptions requiring constructor arguments can be passed as instances,
    the others as classes.

    Args:
        exceptions (List[APIException | Type[APIException]]): Exceptions the
            endpoint may raise.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        exceptionCls = exception if isinstance(exception, type) else type(exception)
        status_code = exception.status_code
        example_key = exceptionCls.__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> enumStr(SeatStatus)
        'AVAILABLE: 1, MAINTENANCE: 2'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    "PENDING": ["APPROVED", "CANCELLED"],
                    "APPROVED": ["FINALIZED"],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     driver,
        ...     fParam,
        ...     [
        ...         Driver.full_name.key,
        ...         Driver.phone_number.key,
        ...     ],
        ... )
        # driver will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)

