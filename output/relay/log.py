import logging

from output.relay.base import register_reporter

L = logging.getLogger("crash_capture.output.relay.log")


@register_reporter("log")
def build_log_reporter(*, level: int = logging.WARNING, **_kwargs):
    async def report(record):
        snap = record.snapshot()
        exc = snap.get("exception", {})
        L.log(
            level,
            "Capture %s id=%d type=%s message=%s",
            record.filename,
            record.id,
            exc.get("type", ""),
            exc.get("message", ""),
        )

    return report
