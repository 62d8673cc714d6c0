"""Domain error codes (str(ValueError)) -> HTTP status and message."""
from typing import NoReturn

from fastapi import HTTPException, status

ERRORS = {
    "post_not_found": (status.HTTP_404_NOT_FOUND, "Post not found"),
    "group_not_found": (status.HTTP_404_NOT_FOUND, "Facebook group not found"),
    "profile_not_found": (status.HTTP_404_NOT_FOUND, "Profile not found"),
    "not_post_author": (status.HTTP_403_FORBIDDEN, "Only the author of the post can do this"),
    "violation_action_forbidden": (status.HTTP_403_FORBIDDEN, "Not allowed to take this action on the violation"),
    "report_forbidden": (status.HTTP_403_FORBIDDEN, "Not allowed to read this report"),
    "group_inactive": (status.HTTP_409_CONFLICT, "Facebook group is inactive"),
    "post_not_editable": (status.HTTP_409_CONFLICT, "Post can no longer be edited"),
    "illegal_transition": (status.HTTP_409_CONFLICT, "Post status does not allow this action"),
    "illegal_violation_transition": (status.HTTP_409_CONFLICT, "Violation status does not allow this action"),
    "post_not_violating": (status.HTTP_409_CONFLICT, "Post has no territory violation"),
    "justification_required": (status.HTTP_422_UNPROCESSABLE_ENTITY, "Justification text is required"),
    "scheduled_for_required": (status.HTTP_422_UNPROCESSABLE_ENTITY, "scheduled_for is required"),
    "field_not_editable": (status.HTTP_422_UNPROCESSABLE_ENTITY, "Field cannot be edited"),
}


def raise_http(e: ValueError) -> NoReturn:
    """Raise the HTTPException of a known error code; unknown errors propagate unchanged."""
    code = str(e)
    if code not in ERRORS:
        raise e
    status_code, detail = ERRORS[code]
    raise HTTPException(status_code=status_code, detail=detail, headers={"X-Error-Code": code}) from e
