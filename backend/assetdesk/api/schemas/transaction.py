"""Request and response payloads for the transaction workflow."""

from pydantic import BaseModel, Field, model_validator


class BorrowRequest(BaseModel):
    serial_id: str
    employee_id: str | None = None
    department_id: str | None = None
    note: str | None = None

    @model_validator(mode="after")
    def require_borrower(self) -> "BorrowRequest":
        if not self.employee_id and not self.department_id:
            raise ValueError("employee_id or department_id is required")
        return self


class ReturnRequest(BaseModel):
    condition: str
    note: str | None = None


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ReturnRequestCreate(BaseModel):
    serial_id: str
    note: str = ""
    client_request_id: str | None = None


class ReturnRequestRead(BaseModel):
    id: str
    status: str
    request_id: str
    replayed: bool = False


class TransactionPage(BaseModel):
    data: list[dict]
    total: int
    total_pages: int
    page: int
    page_size: int


class StatusOption(BaseModel):
    value: str
    label: str
    returned_like: bool
