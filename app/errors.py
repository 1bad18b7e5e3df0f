from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ApiError(Exception):
    """Error carrying the HTTP status and the JSON body sent back to the client."""

    def __init__(self, status_code: int, error: str, headers: dict | None = None, **details):
        super().__init__(error)
        self.status_code = status_code
        self.headers = headers
        self.body = {"error": error, **details}


async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.body, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Données invalides", "fields": fields})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))
