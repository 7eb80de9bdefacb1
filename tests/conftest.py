from datetime import date

import pytest

from sistema_loja import create_app
from sistema_loja.init_db import criar_usuarios_padrao
from sistema_loja.models import db, Produto, MovimentoEstoque


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'MAIL_USERNAME': 'loja@example.com',
        'MAIL_PASSWORD': 'senha-app',
        'MAIL_DEFAULT_SENDER': 'loja@example.com',
        'NOME_LOJA': 'Wolf Artigos Militares',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    })

    with app.app_context():
        db.create_all()
        criar_usuarios_padrao()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def fazer_login(client, login, senha='123'):
    return client.post('/login', data={'login': login, 'senha': senha})


@pytest.fixture
def admin_client(client):
    fazer_login(client, 'admin')
    return client


@pytest.fixture
def venda_client(client):
    fazer_login(client, 'venda1')
    return client


@pytest.fixture
def produto(app):
    """Produto P1 com 10 un. no depósito e 5 un. na loja."""
    with app.app_context():
        db.session.add(Produto(cod_produto='P1', nome='Boné Tático', fornecedor='Fornecedor A',
                               estoque_minimo=2, valor_unitario=50.0))
        db.session.add(MovimentoEstoque(cod_produto='P1', produto='Boné Tático', fornecedor='Fornecedor A',
                                        local='DEPOSITO', qtde=10, data_entrada=date(2025, 1, 2)))
        db.session.add(MovimentoEstoque(cod_produto='P1', produto='Boné Tático', fornecedor='Fornecedor A',
                                        local='LOJA', qtde=5, data_entrada=date(2025, 1, 3)))
        db.session.commit()
    return 'P1'
