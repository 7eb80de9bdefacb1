import logging
from smtplib import SMTPException

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from sistema_loja.notificacoes import EmailNaoConfiguradoError, credenciais_configuradas, enviar_email
from sistema_loja.promissorias import assunto_cobranca

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.route('/enviar-cobranca', methods=['POST'])
@login_required
def enviar_cobranca():
    """Recebe {emailCliente, assunto, corpo} e envia o e-mail de cobrança."""
    dados = request.get_json(silent=True) or {}
    email_cliente = (dados.get('emailCliente') or '').strip()

    if not email_cliente:
        return jsonify({'error': 'E-mail do cliente não informado'}), 400

    if not credenciais_configuradas():
        return jsonify({
            'error': 'Variáveis de ambiente EMAIL_LOJA e/ou EMAIL_SENHA não configuradas',
        }), 500

    assunto = dados.get('assunto') or assunto_cobranca(current_app.config['NOME_LOJA'])
    corpo = dados.get('corpo') or ''

    try:
        enviar_email(email_cliente, assunto, corpo)
    except (SMTPException, OSError, EmailNaoConfiguradoError) as e:
        logger.error('Erro ao enviar e-mail: %s', e, exc_info=True)
        return jsonify({'error': 'Falha ao enviar e-mail'}), 500

    return jsonify({'ok': True}), 200
