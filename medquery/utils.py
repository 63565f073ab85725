import base64
import os
import time


def _debug_enabled() -> bool:
    return os.getenv("MEDQUERY_DEBUG", "").lower() in {"1", "true", "yes", "on"}


# ======================= Logger Class =======================
class Logger:
    def __init__(self):
        self.printed_messages = set()

    def _write(self, message: str):
        log_file = os.getenv("MEDQUERY_LOG_FILE")
        if not log_file:
            return
        try:
            with open(log_file, "a", encoding="utf-8") as fh:
                fh.write(message + "\n")
        except OSError:
            pass

    def log(self, msg, once=False):
        """
        Print a timestamped message.
        If once=True, the message is only printed once per session.
        """
        if once:
            msg_hash = hash(msg)
            if msg_hash in self.printed_messages:
                return
            self.printed_messages.add(msg_hash)
        full_message = f"{time.strftime('%Y-%m-%d %H:%M:%S')} - {msg}"
        print(full_message)
        self._write(full_message)

    def debug(self, msg):
        if _debug_enabled():
            self.log(f"[DEBUG] {msg}")


logger = Logger()


def truncate(text: str, limit: int = 500) -> str:
    if text is None:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."


# ======================= Image Helpers =======================
_IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
)


def sniff_image_mime(data: bytes) -> str:
    """Guess the MIME type from magic bytes; JPEG when unknown."""
    for signature, mime in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def image_to_data_uri(data: bytes) -> str:
    """
    Encode raw image bytes as a base64 data URI, the form the vision
    endpoint accepts inline.
    """
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{sniff_image_mime(data)};base64,{encoded}"


def decode_base64_image(value: str) -> bytes:
    """Accept either a bare base64 string or a full data URI."""
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    return base64.b64decode(value, validate=True)
