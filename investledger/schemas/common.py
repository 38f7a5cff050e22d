# investledger/schemas/common.py
from pydantic import BaseModel


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ErrorResponse(BaseModel):
    error: str
    message: str
