"""
StockLedger 错误处理系统
遵循 RFC7807 Problem Details 标准
"""
from typing import Any, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class ProblemDetail(BaseModel):
    """RFC7807 Problem Details 模型"""
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "type": "about:blank",
                "title": "Insufficient stock",
                "status": 409,
                "detail": "Insufficient stock for item 7. Available: 3, Requested: 5",
                "code": "INSUFFICIENT_STOCK",
                "item_no": 7,
                "available": 3,
                "requested": 5
            }
        }
    )

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[str] = None  # 业务错误码


class LedgerException(Exception):
    """StockLedger 基础异常类"""

    def __init__(
        self,
        status: int,
        code: str,
        title: str,
        detail: Optional[str] = None,
        **kwargs: Any
    ):
        self.status = status
        self.code = code
        self.title = title
        self.detail = detail
        self.extra = kwargs
        super().__init__(detail or title)

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """转换为 Problem Details 格式"""
        return ProblemDetail(
            type="about:blank",
            title=self.title,
            status=self.status,
            detail=self.detail,
            instance=instance,
            code=self.code,
            **self.extra
        )

    def to_response(self, request: Optional[Request] = None) -> JSONResponse:
        """转换为 JSON 响应"""
        instance = str(request.url) if request else None
        problem = self.to_problem_detail(instance)

        return JSONResponse(
            status_code=self.status,
            content={
                "ok": False,
                "error": problem.model_dump(exclude_none=True)
            }
        )


# 预定义错误类
class NotFoundError(LedgerException):
    """404 未找到"""
    def __init__(self, code: str, resource: str, **kwargs: Any):
        super().__init__(
            status=404,
            code=code,
            title="Not Found",
            detail=f"{resource} not found",
            **kwargs
        )


class ItemNotFoundError(NotFoundError):
    """库存项不存在"""
    def __init__(self, item_no: Any):
        super().__init__(
            code="ITEM_NOT_FOUND",
            resource=f"Item {item_no}",
            item_no=item_no
        )


class ConflictError(LedgerException):
    """409 冲突"""
    def __init__(self, code: str, detail: str, **kwargs: Any):
        super().__init__(
            status=409,
            code=code,
            title="Conflict",
            detail=detail,
            **kwargs
        )


class InsufficientStockError(ConflictError):
    """出库数量超过当前结存"""
    def __init__(self, available: int, requested: int, item_no: Any = None):
        if item_no is None:
            detail = f"Insufficient stock. Available: {available}, Requested: {requested}"
        else:
            detail = (
                f"Insufficient stock for item {item_no}. "
                f"Available: {available}, Requested: {requested}"
            )
        super().__init__(
            code="INSUFFICIENT_STOCK",
            detail=detail,
            available=available,
            requested=requested
        )
        self.title = "Insufficient Stock"
        self.available = available
        self.requested = requested
        if item_no is not None:
            self.extra["item_no"] = item_no


class ValidationError(LedgerException):
    """422 验证失败"""
    def __init__(self, code: str, detail: str, **kwargs: Any):
        super().__init__(
            status=422,
            code=code,
            title="Validation Failed",
            detail=detail,
            **kwargs
        )


class InvalidQuantityError(ValidationError):
    """数量非法（非数字、负数或要求为正却不是正数）"""
    def __init__(self, field: str, detail: str):
        super().__init__(
            code="INVALID_QUANTITY",
            detail=detail,
            field=field
        )


class InternalServerError(LedgerException):
    """500 内部错误"""
    def __init__(self, code: str = "INTERNAL_ERROR", detail: str = "An internal error occurred"):
        super().__init__(
            status=500,
            code=code,
            title="Internal Server Error",
            detail=detail
        )


class StoreError(InternalServerError):
    """持久化失败或事务中止"""
    def __init__(self, code: str = "STORE_ERROR", detail: str = "Database operation failed"):
        super().__init__(code=code, detail=detail)


def with_context(exc: LedgerException, **context: Any) -> LedgerException:
    """为已抛出的异常补充上下文（例如批量操作中的 item_no、行号）"""
    for key, value in context.items():
        exc.extra.setdefault(key, value)
    return exc
