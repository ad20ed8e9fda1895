from typing import Iterable, Optional

from fastapi import Response


ALLOW_METHODS = "GET,HEAD,OPTIONS"
ALLOW_HEADERS = "Content-Type"


def allowed_origin(allow_list: Iterable[str], origin: Optional[str]) -> Optional[str]:
    """Value for Access-Control-Allow-Origin, or None to omit it.

    A present origin is echoed when listed or when '*' is listed; with no
    origin, '*' is returned only for a wildcard list.
    """
    origins = [o.strip() for o in allow_list if o and o.strip()]
    wildcard = "*" in origins
    if origin and (origin in origins or wildcard):
        return origin
    if wildcard:
        return "*"
    return None


def with_cors(response: Response, allow_list: Iterable[str], origin: Optional[str]) -> Response:
    value = allowed_origin(allow_list, origin)
    if value is not None:
        response.headers["Access-Control-Allow-Origin"] = value
    elif "access-control-allow-origin" in response.headers:
        del response.headers["Access-Control-Allow-Origin"]

    response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
    response.headers["Vary"] = "Origin"
    return response
