class EscrowError(Exception):
    pass


class AuthorizationError(EscrowError):
    pass


class RoleError(AuthorizationError):
    pass


class ValidationError(EscrowError):
    pass


class ConflictError(EscrowError):
    pass


class NotFoundError(EscrowError):
    pass


class StorageError(EscrowError):
    pass
