from smtplib import SMTPException

import pytest

from conftest import fazer_login
from sistema_loja import create_app
from sistema_loja.init_db import criar_usuarios_padrao
from sistema_loja.models import db
from sistema_loja.notificacoes import mail


def test_exige_email_do_cliente(admin_client):
    resp = admin_client.post('/api/enviar-cobranca', json={'assunto': 'x', 'corpo': 'y'})
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'E-mail do cliente não informado'}


def test_envia_cobranca(admin_client):
    with mail.record_messages() as outbox:
        resp = admin_client.post('/api/enviar-cobranca', json={
            'emailCliente': 'cliente@example.com', 'corpo': 'Olá, há uma parcela em aberto.',
        })

    assert resp.status_code == 200
    assert resp.get_json() == {'ok': True}
    assert len(outbox) == 1
    assert outbox[0].recipients == ['cliente@example.com']
    assert outbox[0].subject == 'Lembrete de pendência - Wolf Artigos Militares'
    assert outbox[0].body == 'Olá, há uma parcela em aberto.'


def test_falha_smtp_retorna_500(admin_client, monkeypatch):
    def falhar(msg):
        raise SMTPException('relay recusou')

    monkeypatch.setattr(mail, 'send', falhar)
    resp = admin_client.post('/api/enviar-cobranca', json={'emailCliente': 'cliente@example.com'})
    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'Falha ao enviar e-mail'}


def test_sem_credenciais_retorna_500(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'MAIL_USERNAME': None,
        'MAIL_PASSWORD': None,
        'UPLOAD_FOLDER': str(tmp_path),
    })
    with app.app_context():
        db.create_all()
        criar_usuarios_padrao()

    client = app.test_client()
    fazer_login(client, 'venda1')
    resp = client.post('/api/enviar-cobranca', json={'emailCliente': 'cliente@example.com'})

    assert resp.status_code == 500
    assert 'EMAIL_LOJA' in resp.get_json()['error']

    with app.app_context():
        db.session.remove()
        db.drop_all()


def test_exige_login(client):
    resp = client.post('/api/enviar-cobranca', json={'emailCliente': 'cliente@example.com'})
    assert resp.status_code == 302


@pytest.mark.parametrize('metodo', ['get', 'put'])
def test_somente_post(admin_client, metodo):
    resp = getattr(admin_client, metodo)('/api/enviar-cobranca')
    assert resp.status_code == 405
