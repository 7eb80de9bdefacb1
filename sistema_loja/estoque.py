from sqlalchemy import func

from sistema_loja.models import db, Produto, MovimentoEstoque

FORNECEDOR_INVALIDO = 'Não se trata de um problema de snooker.'


def limpar_fornecedor(texto):
    """Substitui o texto inválido herdado de cadastros antigos."""
    if texto == FORNECEDOR_INVALIDO:
        return 'Fornecedor'
    return texto or ''


def _catalogo():
    return {p.cod_produto: p for p in Produto.query.all()}


def buscar_produto(cod_produto):
    """Busca no cadastro ignorando maiúsculas/minúsculas."""
    if not cod_produto:
        return None
    cod = str(cod_produto).strip().lower()
    return Produto.query.filter(func.lower(Produto.cod_produto) == cod).first()


def saldo(cod_produto, local=None):
    query = db.session.query(func.coalesce(func.sum(MovimentoEstoque.qtde), 0)).filter(
        func.lower(MovimentoEstoque.cod_produto) == str(cod_produto).strip().lower()
    )
    if local:
        query = query.filter(MovimentoEstoque.local == local)
    return int(query.scalar() or 0)


def saldos_por_produto():
    linhas = (
        db.session.query(MovimentoEstoque.cod_produto, func.sum(MovimentoEstoque.qtde))
        .group_by(MovimentoEstoque.cod_produto)
        .all()
    )
    return {cod: int(qtde or 0) for cod, qtde in linhas}


def produtos_disponiveis():
    """Produtos com saldo total positivo, com valor e foto vindos do cadastro."""
    catalogo = _catalogo()
    disponiveis = []
    for cod, qtde in sorted(saldos_por_produto().items()):
        if qtde <= 0:
            continue
        prod = catalogo.get(cod)
        ultimo = (
            MovimentoEstoque.query.filter_by(cod_produto=cod)
            .order_by(MovimentoEstoque.id.desc())
            .first()
        )
        disponiveis.append({
            'cod_produto': cod,
            'produto': prod.nome if prod else (ultimo.produto if ultimo else ''),
            'fornecedor': limpar_fornecedor(prod.fornecedor if prod else (ultimo.fornecedor if ultimo else '')),
            'qtde': qtde,
            'valor_unitario': float(prod.valor_unitario or 0) if prod else 0.0,
            'foto_url': prod.foto_url if prod else '',
        })
    return disponiveis


def produtos_abaixo_minimo():
    saldos = saldos_por_produto()
    alertas = []
    for prod in Produto.query.order_by(Produto.nome).all():
        minimo = prod.estoque_minimo or 0
        qtde = saldos.get(prod.cod_produto, 0)
        if minimo > 0 and qtde < minimo:
            alertas.append({'cod_produto': prod.cod_produto, 'produto': prod.nome, 'qtde': qtde, 'minimo': minimo})
    return alertas


def inventario(ate=None, local='TODOS'):
    """Saldo por (produto, local) considerando movimentos até a data `ate`.

    Os totais por local consideram todas as linhas, independentemente do
    filtro de local aplicado à listagem.
    """
    query = db.session.query(
        MovimentoEstoque.cod_produto,
        MovimentoEstoque.local,
        func.max(MovimentoEstoque.produto),
        func.max(MovimentoEstoque.fornecedor),
        func.sum(MovimentoEstoque.qtde),
    )
    if ate:
        query = query.filter(MovimentoEstoque.data_entrada <= ate)
    agrupado = query.group_by(MovimentoEstoque.cod_produto, MovimentoEstoque.local).all()

    catalogo = _catalogo()
    linhas = []
    for cod, loc, nome, fornecedor, qtde in agrupado:
        qtde = int(qtde or 0)
        if qtde == 0:
            continue
        prod = catalogo.get(cod)
        valor_unitario = float(prod.valor_unitario or 0) if prod else 0.0
        linhas.append({
            'cod_produto': cod,
            'produto': nome or (prod.nome if prod else ''),
            'fornecedor': limpar_fornecedor(fornecedor or (prod.fornecedor if prod else '')),
            'local': loc,
            'qtde': qtde,
            'valor_unitario': valor_unitario,
            'valor_total': qtde * valor_unitario,
        })
    linhas.sort(key=lambda l: (l['produto'] or '', l['local']))

    totais = {}
    for loc in ('DEPOSITO', 'LOJA'):
        do_local = [l for l in linhas if l['local'] == loc]
        totais[loc] = {
            'qtde': sum(l['qtde'] for l in do_local),
            'valor': sum(l['valor_total'] for l in do_local),
        }

    if local and local != 'TODOS':
        linhas = [l for l in linhas if l['local'] == local]

    return {'linhas': linhas, 'totais': totais}
