import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sistema_loja.estoque import buscar_produto, limpar_fornecedor, saldo
from sistema_loja.models import db, confirmar_sessao, Lancamento, MovimentoEstoque, PagamentoPromissoria, Promissoria
from sistema_loja.promissorias import ABERTO

logger = logging.getLogger(__name__)

FORMAS_VENDA = ('PIX', 'DEBITO', 'CREDITO', 'DINHEIRO', 'PROMISSORIA')
TIPOS_COMPRA = ('COMPRA_DEPOSITO', 'REPOSICAO_LOJA')
TIPOS_OUTROS = ('DESPESA', 'DOACAO')


class EstoqueInsuficienteError(ValueError):
    """Saldo do local menor que a quantidade pedida e sem confirmação do usuário."""

    def __init__(self, local, disponivel, pedido):
        self.local = local
        self.disponivel = disponivel
        self.pedido = pedido
        super().__init__(
            f'Atenção: Estoque em {local} insuficiente (há {disponivel} un.). '
            'Confirme para continuar mesmo assim.'
        )


def gerar_numero_venda(data, sequencia=1):
    """Número da venda no formato AAMMDD-n."""
    return f"{data.strftime('%y%m%d')}-{sequencia}"


def numero_em_uso(nr_venda):
    """Número já usado por uma venda, uma promissória ou um pagamento registrado."""
    if Lancamento.query.filter_by(tipo='VENDA', nr_venda=nr_venda).first():
        return True
    if Promissoria.query.filter_by(nr_venda=nr_venda).first():
        return True
    return PagamentoPromissoria.query.filter_by(nr_venda=nr_venda).first() is not None


def proximo_numero_venda(data):
    """Maior sufixo já usado no dia mais um, inclusive sobre números digitados."""
    prefixo = data.strftime('%y%m%d') + '-'
    padrao = re.compile(r'^' + re.escape(prefixo) + r'(\d+)$')
    numeros = [
        nr for (nr,) in db.session.query(Lancamento.nr_venda).filter(
            Lancamento.tipo == 'VENDA',
            Lancamento.nr_venda.like(prefixo + '%'),
        )
    ]
    numeros += [
        nr for (nr,) in db.session.query(PagamentoPromissoria.nr_venda).filter(
            PagamentoPromissoria.nr_venda.like(prefixo + '%'),
        )
    ]
    sufixos = [int(m.group(1)) for m in (padrao.match(nr or '') for nr in numeros) if m]
    sequencia = max(sufixos, default=0) + 1
    while numero_em_uso(gerar_numero_venda(data, sequencia)):
        sequencia += 1
    return gerar_numero_venda(data, sequencia)


def calcular_inicio_pgto_credito(data):
    """Vendas no crédito começam a ser pagas no dia 5 do mês seguinte."""
    ano, mes = data.year, data.month + 1
    if mes > 12:
        mes = 1
        ano += 1
    return date(ano, mes, 5)


def calcular_valor_liquido(valor_bruto, desconto=0.0, juros=0.0):
    return round((valor_bruto or 0.0) - (desconto or 0.0) + (juros or 0.0), 2)


@dataclass
class VendaDTO:
    data: Optional[date]
    cod_produto: str
    qtde: int
    forma: str = 'PIX'
    desconto: float = 0.0
    juros: float = 0.0
    nr_venda: str = ''
    parcelas: int = 1
    inicio_pagamento: Optional[date] = None
    cliente: str = ''
    email: str = ''
    telefone: str = ''
    confirmar_estoque: bool = False

    def validate(self):
        if not self.data:
            raise ValueError('Informe a data da venda.')
        if not (self.cod_produto or '').strip():
            raise ValueError('Selecione um produto pelo código.')
        if not self.qtde or self.qtde <= 0:
            raise ValueError('Informe uma quantidade maior que zero.')
        if self.desconto < 0 or self.juros < 0:
            raise ValueError('Desconto e juros não podem ser negativos.')
        if self.forma not in FORMAS_VENDA:
            raise ValueError('Forma de pagamento inválida.')
        if self.forma == 'PROMISSORIA':
            if not (self.cliente or '').strip():
                raise ValueError('Informe o cliente da promissória.')
            if not self.parcelas or self.parcelas < 1:
                raise ValueError('Informe ao menos uma parcela.')


def registrar_venda(dto: VendaDTO, vendedor: str = '') -> Lancamento:
    """Registra a saída na LOJA, o lançamento da venda e, se for o caso, a promissória.

    As três gravações são confirmadas juntas em um único commit.
    """
    dto.validate()

    prod = buscar_produto(dto.cod_produto)
    if prod is None:
        raise ValueError('Produto não encontrado no estoque.')

    disponivel_loja = saldo(prod.cod_produto, 'LOJA')
    if disponivel_loja < dto.qtde and not dto.confirmar_estoque:
        raise EstoqueInsuficienteError('LOJA', disponivel_loja, dto.qtde)

    valor_bruto = round(dto.qtde * float(prod.valor_unitario or 0), 2)
    valor_liq = calcular_valor_liquido(valor_bruto, dto.desconto, dto.juros)
    if valor_liq < 0:
        raise ValueError('Desconto maior que o valor da venda.')

    nr_venda = (dto.nr_venda or '').strip()
    if not nr_venda:
        nr_venda = proximo_numero_venda(dto.data)
    elif numero_em_uso(nr_venda):
        raise ValueError(f'O número de venda {nr_venda} já foi utilizado.')
    promissoria = dto.forma == 'PROMISSORIA'

    inicio_pgto = dto.inicio_pagamento
    if dto.forma == 'CREDITO':
        inicio_pgto = calcular_inicio_pgto_credito(dto.data)
    elif promissoria and not inicio_pgto:
        inicio_pgto = dto.data

    fornecedor = limpar_fornecedor(prod.fornecedor)

    db.session.add(MovimentoEstoque(
        cod_produto=prod.cod_produto,
        produto=prod.nome,
        fornecedor=fornecedor,
        local='LOJA',
        qtde=-dto.qtde,
        data_entrada=dto.data,
    ))

    lancamento = Lancamento(
        data=dto.data,
        tipo='VENDA',
        cod_produto=prod.cod_produto,
        produto=prod.nome,
        fornecedor=fornecedor,
        qtde=dto.qtde,
        valor_bruto=valor_bruto,
        desconto=dto.desconto,
        juros=dto.juros,
        valor_liq=valor_liq,
        forma=dto.forma,
        nr_venda=nr_venda,
        local='LOJA',
        parcelas=dto.parcelas if promissoria else None,
        inicio_pagto=inicio_pgto,
        cliente=dto.cliente,
        email=dto.email,
        telefone=dto.telefone,
        vendedor=vendedor,
        status_recb='PENDENTE' if promissoria else 'RECEBIDO',
    )
    db.session.add(lancamento)

    if promissoria:
        db.session.add(Promissoria(
            nr_venda=nr_venda,
            cliente=dto.cliente,
            email=dto.email,
            telefone=dto.telefone,
            valor=valor_liq,
            saldo_devedor=valor_liq,
            data_inicio=inicio_pgto,
            parcelas=dto.parcelas,
            parcelas_atra=0,
            status=ABERTO,
            selecionado=False,
        ))

    confirmar_sessao()
    logger.info('Venda %s registrada: %s x%s (%s)', nr_venda, prod.cod_produto, dto.qtde, dto.forma)
    return lancamento


@dataclass
class CompraDTO:
    data: Optional[date]
    cod_produto: str
    qtde: int
    tipo_transacao: str = 'COMPRA_DEPOSITO'
    fornecedor: str = ''
    confirmar_estoque: bool = False

    def validate(self):
        if not (self.cod_produto or '').strip():
            raise ValueError('Informe o código do produto.')
        if not self.qtde or self.qtde <= 0:
            raise ValueError('Informe uma quantidade maior que zero.')
        if not self.data:
            raise ValueError('Informe a data da movimentação.')
        if self.tipo_transacao not in TIPOS_COMPRA:
            raise ValueError('Tipo de transação inválido.')


def registrar_compra(dto: CompraDTO, usuario: str = '') -> Lancamento:
    """Compra (entrada no DEPOSITO) ou reposição (DEPOSITO para LOJA)."""
    dto.validate()

    prod = buscar_produto(dto.cod_produto)
    if prod is None:
        raise ValueError('Produto não cadastrado.')

    reposicao = dto.tipo_transacao == 'REPOSICAO_LOJA'
    valor_unitario = float(prod.valor_unitario or 0)
    if not reposicao and not valor_unitario:
        raise ValueError(
            'Este produto não possui valor unitário cadastrado. '
            'Defina um valor unitário no cadastro antes de registrar a compra.'
        )

    if reposicao:
        disponivel = saldo(prod.cod_produto, 'DEPOSITO')
        if disponivel < dto.qtde and not dto.confirmar_estoque:
            raise EstoqueInsuficienteError('DEPOSITO', disponivel, dto.qtde)

    fornecedor = limpar_fornecedor(dto.fornecedor or prod.fornecedor)

    def movimento(local, qtde):
        return MovimentoEstoque(
            cod_produto=prod.cod_produto,
            produto=prod.nome,
            fornecedor=fornecedor,
            local=local,
            qtde=qtde,
            data_entrada=dto.data,
        )

    if reposicao:
        db.session.add(movimento('DEPOSITO', -dto.qtde))
        db.session.add(movimento('LOJA', dto.qtde))
    else:
        db.session.add(movimento('DEPOSITO', dto.qtde))

    valor = round(dto.qtde * valor_unitario, 2)
    lancamento = Lancamento(
        data=dto.data,
        tipo='REPOSICAO' if reposicao else 'COMPRA',
        cod_produto=prod.cod_produto,
        produto=prod.nome,
        fornecedor=fornecedor,
        qtde=dto.qtde,
        valor_bruto=valor,
        valor_liq=valor,
        local='LOJA' if reposicao else 'DEPOSITO',
        vendedor=usuario,
    )
    db.session.add(lancamento)

    confirmar_sessao()
    logger.info('%s registrada: %s x%s', lancamento.tipo, prod.cod_produto, dto.qtde)
    return lancamento


@dataclass
class OutroLancamentoDTO:
    data: Optional[date]
    tipo: str
    valor: float = 0.0
    descricao: str = ''
    cod_produto: str = ''
    qtde: int = 0

    def validate(self):
        if not self.data:
            raise ValueError('Informe a data do lançamento.')
        if self.tipo not in TIPOS_OUTROS:
            raise ValueError('Tipo de lançamento inválido.')
        if self.tipo == 'DESPESA':
            if not self.valor or self.valor <= 0:
                raise ValueError('Informe um valor maior que zero.')
            if not (self.descricao or '').strip():
                raise ValueError('Descreva a despesa.')
        if self.tipo == 'DOACAO':
            if not (self.cod_produto or '').strip():
                raise ValueError('Informe o código do produto doado.')
            if not self.qtde or self.qtde <= 0:
                raise ValueError('Informe uma quantidade maior que zero.')


def registrar_outro_lancamento(dto: OutroLancamentoDTO, usuario: str = '') -> Lancamento:
    """Despesa (só valor) ou doação (produto sai da LOJA sem valor)."""
    dto.validate()

    if dto.tipo == 'DESPESA':
        lancamento = Lancamento(
            data=dto.data,
            tipo='DESPESA',
            valor_bruto=round(dto.valor, 2),
            valor_liq=round(dto.valor, 2),
            descricao=dto.descricao.strip(),
            vendedor=usuario,
        )
        db.session.add(lancamento)
    else:
        prod = buscar_produto(dto.cod_produto)
        if prod is None:
            raise ValueError('Produto não cadastrado.')
        fornecedor = limpar_fornecedor(prod.fornecedor)
        db.session.add(MovimentoEstoque(
            cod_produto=prod.cod_produto,
            produto=prod.nome,
            fornecedor=fornecedor,
            local='LOJA',
            qtde=-dto.qtde,
            data_entrada=dto.data,
        ))
        lancamento = Lancamento(
            data=dto.data,
            tipo='DOACAO',
            cod_produto=prod.cod_produto,
            produto=prod.nome,
            fornecedor=fornecedor,
            qtde=dto.qtde,
            valor_bruto=0.0,
            valor_liq=0.0,
            local='LOJA',
            descricao=(dto.descricao or '').strip(),
            vendedor=usuario,
        )
        db.session.add(lancamento)

    confirmar_sessao()
    logger.info('Lançamento %s registrado por %s', dto.tipo, usuario or '-')
    return lancamento
