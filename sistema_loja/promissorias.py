"""Regras das promissórias: parcelas em atraso, status e saldo devedor.

As funções daqui não acessam o banco. Quem chama informa a data de hoje,
o que permite avaliar uma promissória em qualquer dia.
"""
from collections import OrderedDict
from dataclasses import dataclass

from sistema_loja.utils import parse_data, to_float

QUITADO = 'QUITADO'
PENDENTE = 'PENDENTE'
ABERTO = 'ABERTO'

TEXTO_COBRANCA = """Bom dia Sr(a) {nome},

Somos da Equipe Financeira da {loja}! O motivo do contato é
para lembrá-lo de entrar em contato com um de nossos funcionários e
verificar uma possível pendência com a nossa Loja, referente a compra
realizada em {data}.

Aproveite também para verificar nossos produtos!!

Caso já tenha realizado o pagamento da compra mencionada, favor
desconsiderar esta mensagem!

Atenciosamente,
Equipe Financeira
{loja}"""


def calcular_parcelas_em_atraso(data_inicio, total_parcelas, hoje):
    """Quantidade de parcelas vencidas até `hoje`.

    Conta o mês de início como a primeira parcela vencida e limita o
    resultado a [0, total_parcelas]. Se o início ainda não chegou, é zero.
    """
    inicio = parse_data(data_inicio)
    hoje = parse_data(hoje)
    if inicio is None or hoje is None:
        return 0
    if inicio > hoje:
        return 0

    meses = (hoje.year - inicio.year) * 12 + (hoje.month - inicio.month) + 1
    total = max(int(total_parcelas or 0), 0)
    return min(max(meses, 0), total)


def calcular_status(saldo, parcelas_atrasadas):
    if round(to_float(saldo), 2) <= 0:
        return QUITADO
    if parcelas_atrasadas > 0:
        return PENDENTE
    return ABERTO


def calcular_saldo_devedor(valor_original, valores_pagos):
    """Valor original menos tudo que já foi pago, nunca negativo."""
    saldo = to_float(valor_original) - sum(to_float(v) for v in valores_pagos)
    return max(round(saldo, 2), 0.0)


def calcular_saldo_final(saldo_devedor, valor_pago):
    return max(round(to_float(saldo_devedor) - to_float(valor_pago), 2), 0.0)


@dataclass
class SituacaoPromissoria:
    promissoria: object
    parcelas_atrasadas: int
    status: str
    saldo: float

    @property
    def quitada(self):
        return self.status == QUITADO


def avaliar(promissoria, hoje):
    saldo = to_float(promissoria.saldo_devedor)
    atrasadas = calcular_parcelas_em_atraso(promissoria.data_inicio, promissoria.parcelas, hoje)
    return SituacaoPromissoria(
        promissoria=promissoria,
        parcelas_atrasadas=atrasadas,
        status=calcular_status(saldo, atrasadas),
        saldo=saldo,
    )


def listar_em_aberto(promissorias, hoje, somente_atrasadas=False):
    situacoes = [avaliar(p, hoje) for p in promissorias]
    situacoes = [s for s in situacoes if not s.quitada]
    if somente_atrasadas:
        situacoes = [s for s in situacoes if s.parcelas_atrasadas > 0]
    return situacoes


def consolidar_por_cliente(situacoes):
    consolidado = OrderedDict()
    for s in situacoes:
        cliente = s.promissoria.cliente or ''
        if cliente not in consolidado:
            consolidado[cliente] = {
                'cliente': cliente,
                'email': s.promissoria.email,
                'total': 0.0,
                'atrasadas': 0,
            }
        consolidado[cliente]['total'] += s.saldo
        consolidado[cliente]['atrasadas'] += s.parcelas_atrasadas
    return list(consolidado.values())


def assunto_cobranca(nome_loja):
    return f'Lembrete de pendência - {nome_loja}'


def montar_texto_cobranca(cliente, data_compra, nome_loja):
    data = parse_data(data_compra)
    data_formatada = data.strftime('%d/%m/%y') if data else ''
    return TEXTO_COBRANCA.format(nome=cliente or 'cliente', loja=nome_loja, data=data_formatada)
