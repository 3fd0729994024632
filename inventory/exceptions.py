class InventoryError(Exception):
    status_code = 500
    code = "INTERNAL"


class ConflictError(InventoryError):
    status_code = 409
    code = "CONFLICT"


class NotFoundError(InventoryError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidArgumentError(InventoryError):
    status_code = 400
    code = "INVALID_ARGUMENT"
