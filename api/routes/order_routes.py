"""
订单相关API路由
"""
import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Body, Depends, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from api.dependencies.caller_deps import get_current_user_id, get_optional_user_id
from api.utils.api_response import APIResponse
from core.orders.models import ErrorKind, OrderItemRequest
from core.orders.order_workflow import OrderWorkflow, get_order_workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/order", tags=["订单"])


class CreateOrderItemRequest(BaseModel):
    """下单明细"""
    medicationId: Union[str, int]
    quantity: int


class CreateOrderRequest(BaseModel):
    """创建订单请求"""
    userId: str
    shippingAddress: Optional[str] = None
    paymentMethod: Optional[str] = None
    items: List[CreateOrderItemRequest] = []


class UpdateOrderStatusRequest(BaseModel):
    """更新订单状态请求"""
    status: str


@router.post("")
async def create_order(
    request: CreateOrderRequest,
    workflow: OrderWorkflow = Depends(get_order_workflow)
):
    """创建订单：定价、扣款，成功返回 Processing 状态订单"""
    items = [
        OrderItemRequest(medication_id=str(item.medicationId), quantity=item.quantity)
        for item in request.items
    ]
    result = await run_in_threadpool(
        workflow.create_order,
        request.userId,
        items,
        request.shippingAddress,
        request.paymentMethod
    )

    if not result.success:
        # 引用的药品不存在属于请求内容错误
        return APIResponse.from_failure(result, {ErrorKind.NOT_FOUND: 400})

    order = result.order
    return APIResponse.success(
        data=order.to_dict(),
        message="订单创建成功",
        status_code=201,
        headers={"Location": f"/order/{order.id}"}
    )


@router.get("/user/{user_id}")
async def get_user_orders(
    user_id: str,
    workflow: OrderWorkflow = Depends(get_order_workflow)
):
    """获取用户全部订单（按下单时间倒序）"""
    orders = await run_in_threadpool(workflow.list_user_orders, user_id)
    return APIResponse.success(data=[order.to_dict() for order in orders])


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    caller_id: Optional[str] = Depends(get_optional_user_id),
    workflow: OrderWorkflow = Depends(get_order_workflow)
):
    """获取订单详情；携带用户身份时只能查看自己的订单"""
    result = await run_in_threadpool(workflow.get_order, order_id, caller_id)
    if not result.success:
        return APIResponse.from_failure(result)
    return APIResponse.success(data=result.order.to_dict())


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: Union[UpdateOrderStatusRequest, str] = Body(...),
    workflow: OrderWorkflow = Depends(get_order_workflow)
):
    """更新订单状态，请求体可以是 JSON 字符串或 {"status": ...}"""
    new_status = body.status if isinstance(body, UpdateOrderStatusRequest) else body
    result = await run_in_threadpool(workflow.update_status, order_id, new_status)
    if not result.success:
        return APIResponse.from_failure(result)
    return Response(status_code=204)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    caller_id: str = Depends(get_current_user_id),
    workflow: OrderWorkflow = Depends(get_order_workflow)
):
    """取消订单（仅限订单所有者）"""
    result = await run_in_threadpool(workflow.cancel_order, order_id, caller_id)
    if not result.success:
        return APIResponse.from_failure(result)
    return Response(status_code=204)
