from typing import Any

import httpx


def ok(data: Any = None) -> httpx.Response:
    return httpx.Response(200, json={"code": 0, "msg": "", "data": data})


def fail(msg: str, status: int = 200, code: int = 500) -> httpx.Response:
    return httpx.Response(status, json={"code": code, "msg": msg})
