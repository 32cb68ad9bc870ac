from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel


class PageRef(BaseModel):
    page: int
    limit: int


class EmptyDataResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]
