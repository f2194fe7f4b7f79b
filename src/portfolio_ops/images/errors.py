from __future__ import annotations


class ImageRequestError(Exception):
    """A request the image endpoints reject with a specific HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
