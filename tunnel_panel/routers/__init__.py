"""
Routers Package - 路由模块

包含:
- topology: 拓扑校验与提交载荷规范化
- diagnosis: 诊断报告分组
- order: 列表排序协调
"""

from .diagnosis import router as diagnosis_router
from .order import router as order_router
from .topology import router as topology_router

__all__ = [
    "diagnosis_router",
    "order_router",
    "topology_router",
]
