import logging
import re
from urllib.parse import quote

from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


class EmailNaoConfiguradoError(RuntimeError):
    pass


def credenciais_configuradas():
    return bool(current_app.config.get('MAIL_USERNAME') and current_app.config.get('MAIL_PASSWORD'))


def enviar_email(destinatario, assunto, corpo):
    """Envia um e-mail de texto pelo relay SMTP configurado."""
    if not credenciais_configuradas():
        raise EmailNaoConfiguradoError(
            'Variáveis de ambiente EMAIL_LOJA e/ou EMAIL_SENHA não configuradas'
        )

    msg = Message(
        subject=assunto,
        recipients=[destinatario],
        body=corpo,
        sender=current_app.config.get('MAIL_DEFAULT_SENDER'),
    )
    mail.send(msg)
    logger.info('E-mail enviado para %s', destinatario)


def link_whatsapp(telefone, texto):
    """Link wa.me com DDI 55; None quando o telefone não tem dígitos."""
    numeros = re.sub(r'\D', '', str(telefone or ''))
    if not numeros:
        return None
    return f'https://wa.me/55{numeros}?text={quote(texto)}'
