import logging
import smtplib
import ssl
from datetime import datetime
from email.message import EmailMessage

from logwatcher.errors import SendError

logger = logging.getLogger(__name__)

ALERT_SUBJECT = "Bot: ERROR Occurred!!"
DEFAULT_SMTP_PORT = 465
SMTP_TIMEOUT = 60


def build_message(settings, now=None) -> EmailMessage:
    """Compose the alert email for the configured log."""
    if now is None:
        now = datetime.now().astimezone()
    msg = EmailMessage()
    msg["Subject"] = ALERT_SUBJECT
    msg["From"] = settings.username
    msg["To"] = settings.target
    msg.set_content(f"Multiple error occurred on {settings.log_id} at {now}")
    return msg


def parse_endpoint(endpoint):
    """
    Split an SMTP endpoint into (host, port).

    Accepts 'host', 'host:port', a bare IPv6 literal, or '[v6]:port'.
    """
    if endpoint.startswith("["):
        host, sep, rest = endpoint[1:].partition("]")
        if not sep or (rest and not (rest.startswith(":") and rest[1:].isdigit())):
            raise ValueError(f"Invalid SMTP endpoint: {endpoint}")
        return host, int(rest[1:]) if rest else DEFAULT_SMTP_PORT
    if endpoint.count(":") == 1:
        host, _, port = endpoint.partition(":")
        if port.isdigit():
            return host, int(port)
    return endpoint, DEFAULT_SMTP_PORT


class AlertDispatcher:
    """
    Sends alert emails over implicit-TLS SMTP.

    A send is attempted exactly once; failures are logged and never propagate
    out of dispatch().
    """

    def __init__(self, settings, smtp_factory=smtplib.SMTP_SSL):
        self.settings = settings
        self.smtp_factory = smtp_factory

    def send(self):
        """
        Compose and send one alert.

        Raises:
            SendError: If composing the message or talking to the server fails.
        """
        try:
            host, port = parse_endpoint(self.settings.smtp)
            msg = build_message(self.settings)
            with self.smtp_factory(host, port, timeout=SMTP_TIMEOUT,
                                   context=ssl.create_default_context()) as smtp:
                smtp.login(self.settings.username, self.settings.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            raise SendError(f"Email failed to send via {self.settings.smtp}: {e}") from e

    def dispatch(self) -> bool:
        """Send one alert; return True on success, log and return False otherwise."""
        try:
            self.send()
        except SendError as e:
            logger.error(str(e))
            return False
        logger.info(f"Email sent to {self.settings.target}.")
        return True
