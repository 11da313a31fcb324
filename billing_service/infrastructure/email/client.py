import smtplib
import socket
import ssl
from email.errors import MessageError
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from billing_service.config.config import SmtpConfig
from billing_service.config.logger_config import log
from billing_service.core.exceptions import EmailConfigurationError


class EmailClient:
    """
    Client for sending HTML emails through an SMTP server with STARTTLS.
    """

    def __init__(self, smtp_config: SmtpConfig):
        self.config = smtp_config

    def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send an email using the configured SMTP server.

        Args:
            to (str): Recipient email address
            subject (str): Email subject line
            html_body (str): Rendered HTML body

        Returns:
            bool: True if email was sent successfully, False otherwise

        Raises:
            EmailConfigurationError: If the SMTP settings are incomplete
        """
        if not self._validate_inputs(to, subject, html_body):
            return False

        return self._send_message(to, subject, html_body)

    def _validate_inputs(self, to: str, subject: str, body: str) -> bool:
        """Validate input parameters before sending email."""
        if not to or not isinstance(to, str) or "@" not in to:
            log.error("Invalid recipient email address")
            return False

        if not subject or not isinstance(subject, str):
            log.error("Email subject is required")
            return False

        # Line breaks would let caller-supplied text add headers
        if any(ch in value for value in (to, subject) for ch in "\r\n"):
            log.error("Line break in email header value")
            return False

        if not body or not isinstance(body, str):
            log.error("Email body is required", body_length=len(body) if body else 0)
            return False

        return True

    def _create_message(self, to: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.config.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "html"))
        return msg

    def _validate_config(self) -> None:
        """Validate that all required SMTP configuration is present."""
        for field in ("host", "port", "username", "password"):
            if not getattr(self.config, field):
                raise EmailConfigurationError(f"EMAIL_{field.upper()}")

    def _send_message(self, to: str, subject: str, html_body: str) -> bool:
        """Send the email message via SMTP."""
        self._validate_config()

        server = None
        try:
            msg = self._create_message(to, subject, html_body)
            server = self._connect_and_login()

            log.info("Sending email", subject=subject)
            server.send_message(msg)
            log.info("Email sent successfully", subject=subject)
            return True

        except (
            smtplib.SMTPException,
            ssl.SSLError,
            OSError,
            MessageError,
        ) as e:
            return self._handle_smtp_error(e, subject)

        except Exception as e:
            log.error(
                "Unexpected error sending email",
                subject=subject,
                error=str(e),
                exc_info=True,
            )
            return False

        finally:
            self._close_connection(server)

    def _connect_and_login(self) -> smtplib.SMTP:
        """Establish SMTP connection and authenticate."""
        log.debug(
            "Creating SMTP connection", host=self.config.host, port=self.config.port
        )
        server = smtplib.SMTP(self.config.host, self.config.port, timeout=30)
        try:
            server.starttls(context=ssl.create_default_context())
            log.debug("Logging in to SMTP server")
            server.login(self.config.username, self.config.password)
        except Exception:
            self._close_connection(server)
            raise
        return server

    def _handle_smtp_error(self, error: Exception, subject: str) -> bool:
        """Log a specific SMTP-related error and report failure."""
        error_map = {
            smtplib.SMTPAuthenticationError: "SMTP authentication failed - check username and password",
            smtplib.SMTPConnectError: "Failed to connect to SMTP server",
            smtplib.SMTPServerDisconnected: "SMTP server disconnected unexpectedly",
            smtplib.SMTPRecipientsRefused: "SMTP server refused recipient",
            smtplib.SMTPSenderRefused: "SMTP server refused sender",
            smtplib.SMTPDataError: "SMTP server rejected email data",
            ssl.SSLError: "SSL/TLS connection error",
            TimeoutError: "Connection timeout to SMTP server",
            ConnectionRefusedError: "Connection refused by SMTP server",
            socket.gaierror: "Could not resolve SMTP host",
            MessageError: "Email message could not be built",
        }

        error_type = type(error)
        log_fn = (
            log.critical
            if error_type
            in [
                smtplib.SMTPConnectError,
                smtplib.SMTPServerDisconnected,
                ConnectionRefusedError,
                TimeoutError,
                socket.gaierror,
            ]
            else log.warning
        )

        log_fn(
            error_map.get(error_type, "SMTP error occurred"),
            subject=subject,
            error=str(error),
        )
        return False

    def _close_connection(self, server: Optional[smtplib.SMTP]) -> None:
        """Safely close the SMTP connection."""
        if server:
            try:
                log.debug("Closing SMTP connection")
                server.quit()
            except Exception as e:
                log.warning("Error closing SMTP connection", error=str(e))
