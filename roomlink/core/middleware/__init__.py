from roomlink.core.middleware.error_handling import register_exception_handlers
from roomlink.core.middleware.request_context import get_request_id, register_middlewares

__all__ = ["register_exception_handlers", "register_middlewares", "get_request_id"]
