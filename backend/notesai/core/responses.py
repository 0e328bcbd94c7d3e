"""
Uniform response envelope: {success, message, data, errors}.
"""


def success_response(data=None, message: str | None = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def build_pagination(total: int, page: int, page_size: int) -> dict:
    """Pagination block returned alongside list results."""
    total_pages = max(1, -(-total // page_size))  # ceiling division
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page * page_size < total,
        "has_prev": page > 1,
    }


def paginated_response(
    items: list,
    total: int,
    page: int,
    page_size: int,
    key: str = "items",
    message: str | None = None,
) -> dict:
    return success_response(
        {key: items, "pagination": build_pagination(total, page, page_size)},
        message,
    )
