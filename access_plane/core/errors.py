class AccessError(Exception):
    pass


class SessionUnavailableError(AccessError):
    pass
