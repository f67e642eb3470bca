"""
Tunnel Panel - 隧道拓扑编辑、诊断聚合与列表排序
"""

__version__ = "0.1.0"
