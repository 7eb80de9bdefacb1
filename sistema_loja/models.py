from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from sqlalchemy import Column, Integer, String, Float, Date, Boolean, Text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

PERFIS = ('ADM', 'GER', 'VENDA')
LOCAIS = ('LOJA', 'DEPOSITO')
TIPOS_LANCAMENTO = ('VENDA', 'COMPRA', 'REPOSICAO', 'DESPESA', 'DOACAO')


class Usuario(UserMixin, db.Model):
    __tablename__ = 'usuarios'
    id = Column(Integer, primary_key=True)
    login = Column(String(50), unique=True, nullable=False)
    nome = Column(String(100), nullable=False)
    perfil = Column(String(10), nullable=False, default='VENDA')
    senha_hash = Column(String(255), nullable=False)

    def definir_senha(self, senha):
        self.senha_hash = generate_password_hash(senha)

    def check_password(self, senha):
        return check_password_hash(self.senha_hash, senha)

    @property
    def nome_exibicao(self):
        return self.nome or self.login

    @property
    def is_admin(self):
        return self.perfil == 'ADM'


class Produto(db.Model):
    __tablename__ = 'produtos'
    id = Column(Integer, primary_key=True)
    cod_produto = Column(String(50), unique=True, nullable=False)
    nome = Column(String(150), nullable=False)
    fornecedor = Column(String(150), default='')
    estoque_minimo = Column(Integer, default=0)
    valor_unitario = Column(Float, default=0.0)
    foto_url = Column(Text)


class MovimentoEstoque(db.Model):
    __tablename__ = 'estoque'
    id = Column(Integer, primary_key=True)
    cod_produto = Column(String(50), nullable=False, index=True)
    produto = Column(String(150))
    fornecedor = Column(String(150))
    local = Column(String(10), nullable=False)
    qtde = Column(Integer, nullable=False)
    data_entrada = Column(Date, nullable=False)


class Lancamento(db.Model):
    __tablename__ = 'lancamentos'
    id = Column(Integer, primary_key=True)
    data = Column(Date, nullable=False)
    tipo = Column(String(20), nullable=False)
    cod_produto = Column(String(50))
    produto = Column(String(150))
    fornecedor = Column(String(150))
    qtde = Column(Integer, default=0)
    valor_bruto = Column(Float, default=0.0)
    desconto = Column(Float, default=0.0)
    juros = Column(Float, default=0.0)
    valor_liq = Column(Float, default=0.0)
    forma = Column(String(30))
    nr_venda = Column(String(20), index=True)
    local = Column(String(10))
    parcelas = Column(Integer)
    inicio_pagto = Column(Date)
    cliente = Column(String(100))
    email = Column(String(150))
    telefone = Column(String(30))
    vendedor = Column(String(100))
    status_recb = Column(String(20))
    descricao = Column(String(255))

    @property
    def valor_final(self):
        if self.valor_liq is not None:
            return self.valor_liq
        return self.valor_bruto or 0.0


class Promissoria(db.Model):
    __tablename__ = 'promissorias'
    id = Column(Integer, primary_key=True)
    nr_venda = Column(String(20), unique=True, nullable=False)
    cliente = Column(String(100))
    email = Column(String(150))
    telefone = Column(String(30))
    valor = Column(Float, nullable=False, default=0.0)
    saldo_devedor = Column(Float, nullable=False, default=0.0)
    data_inicio = Column(Date, nullable=False)
    parcelas = Column(Integer, nullable=False, default=1)
    parcelas_atra = Column(Integer, default=0)
    status = Column(String(20), default='ABERTO')
    selecionado = Column(Boolean, nullable=False, default=False)
    email_enviado = Column(Boolean, nullable=False, default=False)


class PagamentoPromissoria(db.Model):
    __tablename__ = 'pagamentos_promissorias'
    id = Column(Integer, primary_key=True)
    data_pagamento = Column(Date, nullable=False)
    nr_venda = Column(String(20), nullable=False, index=True)
    cliente = Column(String(100))
    forma_pagamento = Column(String(30), nullable=False)
    parcelas_atrasadas = Column(Integer, default=0)
    saldo_devedor = Column(Float, nullable=False)
    valor_pago = Column(Float, nullable=False)
    saldo_devedor_final = Column(Float, nullable=False)


def confirmar_sessao():
    """Commit da sessão; em erro de banco desfaz tudo e propaga a exceção."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
