"""
库存项 API 路由
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from sl_core.database import DatabaseManager, get_db_manager
from sl_core.ledger.store import ItemStore, get_item_store
from sl_core.services import (
    BulkCreateService, CheckoutService, ItemQueryService, ItemService
)
from .models import (
    ApiResponse, BulkCreateRequest, CheckoutRequest, ItemListResponse, ItemPayload,
    QuantityOverrideRequest, StockInsertRequest, StockOutRequest, StockSetRequest,
)

router = APIRouter()


async def get_item_service(store: ItemStore = Depends(get_item_store)) -> ItemService:
    """依赖注入：获取库存项服务"""
    return ItemService(store)


async def get_checkout_service(store: ItemStore = Depends(get_item_store)) -> CheckoutService:
    """依赖注入：获取出库结算服务"""
    return CheckoutService(store)


async def get_bulk_service(store: ItemStore = Depends(get_item_store)) -> BulkCreateService:
    """依赖注入：获取批量创建服务"""
    return BulkCreateService(store)


async def get_query_service(db_manager: DatabaseManager = Depends(get_db_manager)) -> ItemQueryService:
    """依赖注入：获取目录查询服务"""
    return ItemQueryService(db_manager)


# 查询
@router.get("", response_model=ApiResponse[ItemListResponse])
async def list_items(
    search: str = Query("", description="按名称/品牌/供应商模糊搜索"),
    item_type: str = Query("", description="类型"),
    location: str = Query("", description="库位"),
    item_status: str = Query("", description="Out Of Stock | Low In Stock | In Stock"),
    sort_by: str = Query("item_no", description="排序字段"),
    sort_order: str = Query("ASC", description="ASC | DESC"),
    limit: Optional[int] = Query(None, description="每页数量"),
    offset: int = Query(0, description="偏移量"),
    query_service: ItemQueryService = Depends(get_query_service)
):
    """库存列表（过滤、分页、排序、统计）"""
    result = await query_service.list_items(
        search=search,
        item_type=item_type,
        location=location,
        item_status=item_status,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset
    )
    return ApiResponse.success(result)


@router.get("/filters/options", response_model=ApiResponse[dict])
async def get_filter_options(query_service: ItemQueryService = Depends(get_query_service)):
    """筛选下拉选项"""
    return ApiResponse.success(await query_service.filter_options())


@router.get("/supplier/{supplier}", response_model=ApiResponse[dict])
async def get_items_by_supplier(
    supplier: str,
    query_service: ItemQueryService = Depends(get_query_service)
):
    """按供应商查询"""
    return ApiResponse.success(await query_service.items_by_supplier(supplier))


@router.get("/reports/dashboard", response_model=ApiResponse[dict])
async def get_dashboard_stats(query_service: ItemQueryService = Depends(get_query_service)):
    """仪表盘统计"""
    return ApiResponse.success(await query_service.dashboard_stats())


@router.get("/reports/inventory-summary", response_model=ApiResponse[dict])
async def get_inventory_summary(query_service: ItemQueryService = Depends(get_query_service)):
    """库存汇总报表"""
    return ApiResponse.success(await query_service.inventory_summary())


# 批量操作
@router.post("/checkout", response_model=ApiResponse[dict])
async def checkout_items(
    checkout_data: CheckoutRequest,
    checkout_service: CheckoutService = Depends(get_checkout_service)
):
    """出库结算：整批成功或整批回滚"""
    result = await checkout_service.checkout(
        checkout_data.items,
        checkout_by=checkout_data.checkout_by,
        notes=checkout_data.notes
    )
    return ApiResponse.success(result.data)


@router.post("/bulk", response_model=ApiResponse[dict], status_code=201)
async def bulk_create_items(
    bulk_data: BulkCreateRequest,
    bulk_service: BulkCreateService = Depends(get_bulk_service)
):
    """批量创建：逐行独立提交，失败行在 errors 中返回"""
    result = await bulk_service.bulk_create(bulk_data.items)
    return ApiResponse.success(result.data)


# 库存变更
@router.patch("/stock/{item_no}", response_model=ApiResponse[dict])
async def set_stock(
    item_no: int,
    stock_data: StockSetRequest,
    item_service: ItemService = Depends(get_item_service)
):
    """设定结存（保留累计出库）"""
    result = await item_service.set_stock(
        item_no,
        stock_data.balance,
        adjustment_reason=stock_data.adjustment_reason or "Manual adjustment"
    )
    return ApiResponse.success(result.data, metadata=result.metadata)


@router.post("/stock/{item_no}/insert", response_model=ApiResponse[dict])
async def insert_stock(
    item_no: int,
    stock_data: StockInsertRequest,
    item_service: ItemService = Depends(get_item_service)
):
    """入库"""
    result = await item_service.insert_stock(
        item_no,
        stock_data.quantity,
        reason=stock_data.reason or "Stock insertion"
    )
    return ApiResponse.success(result.data, metadata=result.metadata)


@router.post("/stock/{item_no}/out", response_model=ApiResponse[dict])
async def stock_out(
    item_no: int,
    stock_data: StockOutRequest,
    item_service: ItemService = Depends(get_item_service)
):
    """出库；结存不足返回 409"""
    result = await item_service.stock_out(
        item_no,
        stock_data.quantity,
        notes=stock_data.notes,
        out_by=stock_data.out_by
    )
    return ApiResponse.success(result.data, metadata=result.metadata)


@router.put("/stock/{item_no}/quantity", response_model=ApiResponse[dict])
async def override_quantities(
    item_no: int,
    override_data: QuantityOverrideRequest,
    item_service: ItemService = Depends(get_item_service)
):
    """直接覆盖入库/出库/结存数量"""
    result = await item_service.override_quantities(
        item_no,
        in_qty=override_data.in_qty,
        out_qty=override_data.out_qty,
        balance=override_data.balance,
        update_type=override_data.update_type,
        notes=override_data.notes,
        updated_by=override_data.updated_by
    )
    return ApiResponse.success(result.data, metadata=result.metadata)


# 单项 CRUD
@router.get("/{item_no}", response_model=ApiResponse[dict])
async def get_item(
    item_no: int,
    item_service: ItemService = Depends(get_item_service)
):
    """查询单个库存项"""
    result = await item_service.get_item(item_no)
    return ApiResponse.success(result.data)


@router.post("", response_model=ApiResponse[dict], status_code=201)
async def create_item(
    item_data: ItemPayload,
    item_service: ItemService = Depends(get_item_service)
):
    """创建库存项：in_qty = balance，out_qty = 0"""
    result = await item_service.create_item(item_data.model_dump())
    return ApiResponse.success(result.data)


@router.put("/{item_no}", response_model=ApiResponse[dict])
async def update_item(
    item_no: int,
    item_data: ItemPayload,
    item_service: ItemService = Depends(get_item_service)
):
    """
    整体修改库存项

    balance 为期望结存，in_qty 按 balance + 现有 out_qty 重新计算；
    请求中的 in_qty 会被忽略。
    """
    result = await item_service.update_item(item_no, item_data.model_dump())
    return ApiResponse.success(result.data)


@router.delete("/{item_no}", response_model=ApiResponse[dict])
async def delete_item(
    item_no: int,
    item_service: ItemService = Depends(get_item_service)
):
    """删除库存项，返回删除前的快照"""
    result = await item_service.delete_item(item_no)
    return ApiResponse.success(result.data)
