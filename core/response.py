def ok(data=None):
    """Standard success envelope."""
    return {"ok": True, "data": data, "error": None}


def error(code: str = "internal_error", message: str = "An internal error occurred", details: str | None = None):
    """Standard error envelope. `details` carries a human-readable hint when there is one."""
    err = {"code": code, "message": message}
    if details:
        err["details"] = details
    return {"ok": False, "data": None, "error": err}
