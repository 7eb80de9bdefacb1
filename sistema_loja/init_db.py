import logging

from sistema_loja import create_app
from sistema_loja.models import db, Usuario

logger = logging.getLogger(__name__)

USUARIOS_PADRAO = [
    {'login': 'admin', 'senha': '123', 'perfil': 'ADM', 'nome': 'Administrador'},
    {'login': 'gerente', 'senha': '123', 'perfil': 'GER', 'nome': 'Gerente'},
    {'login': 'venda1', 'senha': '123', 'perfil': 'VENDA', 'nome': 'Vendedor 1'},
]


def criar_usuarios_padrao():
    """Cadastra os usuários padrão somente se a tabela estiver vazia."""
    if Usuario.query.count() > 0:
        return 0
    for dados in USUARIOS_PADRAO:
        usuario = Usuario(login=dados['login'], nome=dados['nome'], perfil=dados['perfil'])
        usuario.definir_senha(dados['senha'])
        db.session.add(usuario)
    db.session.commit()
    logger.info('Usuários padrão cadastrados: %s', ', '.join(u['login'] for u in USUARIOS_PADRAO))
    return len(USUARIOS_PADRAO)


def init_db(app):
    with app.app_context():
        db.create_all()
        criar_usuarios_padrao()


if __name__ == '__main__':
    init_db(create_app())
    print("Banco de dados inicializado com sucesso!")
