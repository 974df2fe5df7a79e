# ==============================================================================
# SERVICIO DE CORREO
# ==============================================================================
# Envía los correos de activación y de recuperación de contraseña.
#
# - Con MAIL_SERVER configurado: SMTP (smtplib)
# - Sin MAIL_SERVER (desarrollo, preview, tests): el correo queda en
#   ``outbox`` y se imprime en consola
# ==============================================================================

import smtplib
from email.message import EmailMessage
from typing import Any, Dict, List, Optional


class EmailDeliveryError(Exception):
    """No se pudo entregar un correo al servidor SMTP."""
    pass


class EmailService:
    """
    Envío de correos transaccionales.

    Uso:
        email_service = EmailService({'MAIL_SERVER': 'smtp.gmail.com', ...})
        email_service.send_activation('ana@correo.com', 'Ana', url)
    """

    OUTBOX_LIMIT = 200

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.server = config.get('MAIL_SERVER')
        self.port = int(config.get('MAIL_PORT') or 587)
        self.username = config.get('MAIL_USERNAME')
        self.password = config.get('MAIL_PASSWORD')
        self.use_tls = bool(config.get('MAIL_USE_TLS', True))
        self.sender = config.get('MAIL_SENDER') or 'AppCenar <no-reply@appcenar.local>'
        self.outbox: List[EmailMessage] = []

    @property
    def uses_smtp(self) -> bool:
        return bool(self.server)

    def _build(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content(body)
        return message

    def send(self, to: str, subject: str, body: str) -> EmailMessage:
        """
        Envía un correo de texto plano.

        Raises:
            EmailDeliveryError: Si el servidor SMTP falla
        """
        message = self._build(to, subject, body)

        if not self.uses_smtp:
            self.outbox.append(message)
            del self.outbox[:-self.OUTBOX_LIMIT]
            print(f"[CORREO] Para: {to} | Asunto: {subject}")
            return message

        try:
            with smtplib.SMTP(self.server, self.port, timeout=30) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or '')
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f'No se pudo enviar el correo a {to}: {e}') from e
        return message

    def send_activation(self, to: str, nombre: str, url: str) -> EmailMessage:
        body = (
            f"Hola {nombre or ''},\n\n"
            "Gracias por registrarte en AppCenar. Para activar tu cuenta abre este enlace:\n\n"
            f"{url}\n\n"
            "Si no creaste esta cuenta puedes ignorar este correo.\n"
        )
        return self.send(to, 'Activa tu cuenta de AppCenar', body)

    def send_password_reset(self, to: str, nombre: str, url: str) -> EmailMessage:
        body = (
            f"Hola {nombre or ''},\n\n"
            "Recibimos una solicitud para restablecer tu contraseña. Abre este enlace:\n\n"
            f"{url}\n\n"
            "Si no la solicitaste, ignora este correo: tu contraseña no cambiará.\n"
        )
        return self.send(to, 'Restablecer contraseña - AppCenar', body)

    def last_message_to(self, to: str) -> Optional[EmailMessage]:
        """Último correo del outbox para un destinatario."""
        for message in reversed(self.outbox):
            if message['To'] == to:
                return message
        return None
