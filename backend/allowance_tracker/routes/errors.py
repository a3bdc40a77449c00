"""Translate service-layer exceptions into HTTP errors."""

from fastapi import HTTPException, status


def to_http(exc: Exception) -> HTTPException:
    """Map ``ValueError``/``PermissionError`` from services to a response.

    Messages ending in "not found" become 404, permission errors 403 and
    any other validation failure 400.
    """
    message = str(exc)
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
    if message.rstrip(".").lower().endswith("not found"):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
