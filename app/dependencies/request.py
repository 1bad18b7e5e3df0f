from fastapi import Request


def get_client_ip(request: Request) -> str:
    """Caller address used as the AI rate-limit key.

    Behind a proxy the first ``X-Forwarded-For`` hop is the original client.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
