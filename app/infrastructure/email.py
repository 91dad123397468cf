import html
import logging
from typing import Optional

from postmarker.core import PostmarkClient
from postmarker.exceptions import ClientError

from app.core.config import settings
from app.core.errors import DeliveryFailure

logger = logging.getLogger(__name__)


class EmailSender:
    """Отправка писем через Postmark.

    Без server token клиент не создается и любая отправка завершается
    DeliveryFailure: приглашение все равно создается, ссылку передают вручную.
    """

    def __init__(self, server_token: Optional[str] = None, sender: Optional[str] = None):
        token = settings.postmark_server_token if server_token is None else server_token
        self.sender = sender or settings.email_sender
        if token:
            self.client = PostmarkClient(server_token=token)
            logger.info("Postmark email client initialized")
        else:
            self.client = None
            logger.warning("POSTMARK_SERVER_TOKEN not set - invitation emails will not be sent")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def send(self, to: str, subject: str, text_body: str, html_body: Optional[str] = None, tag: str = "invitation") -> str:
        """Синхронная отправка; возвращает MessageID провайдера"""
        if not self.is_configured:
            raise DeliveryFailure("Email delivery is not configured")

        try:
            response = self.client.emails.send(
                From=self.sender,
                To=to,
                Subject=subject,
                TextBody=text_body,
                HtmlBody=html_body,
                Tag=tag
            )
        except (ClientError, OSError) as e:
            # OSError покрывает сетевые ошибки requests
            raise DeliveryFailure(f"Email provider error: {e}") from e

        return response["MessageID"]


def render_invitation(document_title: str, inviter_email: str, tier: str, share_url: str) -> tuple:
    """Тема и тела письма-приглашения"""
    subject = f"{inviter_email} shared \"{document_title}\" with you"
    text_body = (
        f"{inviter_email} invited you to the document \"{document_title}\" as {tier}.\n\n"
        f"Open it here: {share_url}\n"
    )
    html_body = (
        f"<p><strong>{html.escape(inviter_email)}</strong> invited you to the document "
        f"&laquo;{html.escape(document_title)}&raquo; as {tier}.</p>"
        f"<p><a href=\"{html.escape(share_url)}\">Open document</a></p>"
    )
    return subject, text_body, html_body


_sender: Optional[EmailSender] = None


def get_email_sender() -> EmailSender:
    """Зависимость FastAPI: один отправитель на процесс"""
    global _sender
    if _sender is None:
        _sender = EmailSender()
    return _sender
