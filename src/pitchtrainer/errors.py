class CaptureError(RuntimeError):
    pass


class SessionStartError(RuntimeError):
    pass
