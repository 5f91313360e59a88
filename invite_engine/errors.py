from typing import Optional

# Bounded engine diagnostics: enough to debug, never the whole stderr
MAX_DIAGNOSTIC_CHARS = 500


class InviteError(Exception):
    """Base error carrying the HTTP status and a short user-facing message"""

    status_code = 500
    public_message = "Something went wrong. Please try again."

    def __init__(self, message: str = None, *, public_message: str = None):
        super().__init__(message or public_message or self.public_message)
        if public_message:
            self.public_message = public_message

    @property
    def details(self) -> Optional[str]:
        """Raw diagnostic text, only surfaced in dev mode"""
        return str(self)


class MissingFieldsError(InviteError):
    status_code = 400
    public_message = "Missing required fields"

    def __init__(self, fields):
        self.fields = list(fields)
        message = f"Missing required fields: {', '.join(self.fields)}"
        super().__init__(message, public_message=message)


class InvalidRequestError(InviteError):
    status_code = 400
    public_message = "Invalid request"

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class InvalidUploadError(InvalidRequestError):
    public_message = "Invalid upload"


class ConfigurationError(InviteError):
    status_code = 500
    public_message = "Video configuration is invalid"


class MissingAssetsError(InviteError):
    status_code = 500
    public_message = "Required video assets are missing on the server"

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing assets: {', '.join(self.missing)}")


class EngineFilterMissingError(MissingAssetsError):
    public_message = "The video engine on the server cannot draw text"

    def __init__(self, ffmpeg_exe: str, filters):
        self.ffmpeg_exe = ffmpeg_exe
        super().__init__([f"ffmpeg filter '{name}' ({ffmpeg_exe})" for name in filters])


class RenderTimeout(InviteError):
    status_code = 500
    public_message = "Video rendering took too long. Please try again."

    def __init__(self, timeout_sec: float):
        self.timeout_sec = timeout_sec
        super().__init__(f"Render exceeded {timeout_sec:g}s timeout")


class RenderProcessError(InviteError):
    status_code = 500
    public_message = "Video composition failed. Please try again."

    def __init__(self, returncode: Optional[int], diagnostics: str = ""):
        self.returncode = returncode
        self.diagnostics = tail(diagnostics)
        super().__init__(f"Engine exited with code {returncode}")

    @property
    def details(self) -> Optional[str]:
        return self.diagnostics or str(self)


class IllustrationError(InviteError):
    status_code = 500
    public_message = "Generation failed. Please try again."


class PaymentError(InviteError):
    status_code = 502
    public_message = "Payment request failed"


class PaymentsDisabledError(PaymentError):
    status_code = 503
    public_message = "Razorpay is disabled"


class ServiceUnavailableError(InviteError):
    status_code = 503
    public_message = "This feature is not configured on the server"


def tail(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    """Keep the last `limit` characters of engine output"""
    if not text:
        return ""
    return text[-limit:]
