# app/core/cors.py
# 跨域中间件
#
# 功能说明：
# 1. 给每个响应加上宽松的 CORS 头
# 2. OPTIONS 预检请求直接返回 200（无响应体），不再往下传递
#
# 没有使用 starlette 自带的 CORSMiddleware：它只在带有
# Access-Control-Request-Method 头时才拦截 OPTIONS，
# 其余 OPTIONS 请求会落到路由上得到 405。

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": (
        "Origin, X-Requested-With, Content-Type, Accept, Authorization, X-CSRF-Token"
    ),
}


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    """
    宽松 CORS 中间件

    注册顺序要在 RequestLoggingMiddleware 之后（即更外层），
    这样预检请求不会进入日志和路由。
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response
