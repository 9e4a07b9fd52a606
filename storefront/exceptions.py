from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.views import exception_handler


class MediaError(Exception):
    """Base class for failures while persisting an uploaded file."""

    # request field being processed, set by MediaBatch.store()
    field = None


class MediaDecodeError(MediaError):
    pass


class MediaTypeError(MediaError):
    pass


class MediaStorageError(MediaError):
    pass


def envelope_exception_handler(exc, context):
    """
    Wrap DRF's own error responses (401/403/404/405/validation) in the
    {success, status, message} envelope every endpoint answers with.
    Anything DRF does not recognise is left to Django (500).
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(exc, ValidationError):
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        response.data = {
            "success": False,
            "status": response.status_code,
            "message": "Validation failed",
            "errors": data,
        }
        return response

    if isinstance(data, dict) and "detail" in data:
        message = str(data["detail"])
    else:
        message = str(data)

    response.data = {
        "success": False,
        "status": response.status_code,
        "message": message,
    }
    return response
