from fastapi import HTTPException


class ApiError(HTTPException):
    """Service-layer failure reported to the caller with its HTTP status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)

    @property
    def message(self) -> str:
        return self.detail
