from app.middleware.request_context import RequestIDMiddleware, RequestLoggingMiddleware

__all__ = ["RequestIDMiddleware", "RequestLoggingMiddleware"]
