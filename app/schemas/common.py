"""
Common Response Schemas
"""
from atams.schemas import ResponseBase, DataResponse, PaginationResponse

__all__ = ["ResponseBase", "DataResponse", "PaginationResponse"]
