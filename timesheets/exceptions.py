from rest_framework import status
from rest_framework.exceptions import APIException


class EntryNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Time entry not found."
    default_code = 'entry_not_found'


class TransitionNotAllowed(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This status change is not allowed."
    default_code = 'transition_not_allowed'

    def __init__(self, entry=None, target=None, detail=None):
        if detail is None and entry is not None:
            detail = (
                f"Cannot move entry {entry.pk} from "
                f"{entry.get_status_display()} to {target}."
            )
        super().__init__(detail=detail)
