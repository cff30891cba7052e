from access_plane.workers.tasks.otc_notifications import send_otc_welcome_email

__all__ = [
    "send_otc_welcome_email",
]
