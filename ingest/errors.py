from __future__ import annotations


class SourceError(Exception):
    pass


class DirectFetchError(SourceError):
    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UnexpectedShapeError(SourceError):
    pass
