"""Operações sobre promissórias gravadas: pagamentos, seleção e cobrança."""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from flask import current_app

from sistema_loja.models import db, confirmar_sessao, Promissoria, PagamentoPromissoria
from sistema_loja.notificacoes import enviar_email, link_whatsapp
from sistema_loja.promissorias import (
    assunto_cobranca,
    calcular_parcelas_em_atraso,
    calcular_saldo_devedor,
    calcular_saldo_final,
    calcular_status,
    montar_texto_cobranca,
)

logger = logging.getLogger(__name__)

FORMAS_PAGAMENTO = ('Dinheiro', 'Pix', 'Cartão Crédito', 'Cartão Débito', 'Boleto', 'Transferência')


def buscar_promissoria(nr_venda):
    if not nr_venda:
        return None
    return Promissoria.query.filter_by(nr_venda=str(nr_venda).strip()).first()


def saldo_atual(promissoria):
    """Valor original menos os pagamentos já registrados para o Nr Venda."""
    pagos = [
        p.valor_pago
        for p in PagamentoPromissoria.query.filter_by(nr_venda=promissoria.nr_venda).all()
    ]
    return calcular_saldo_devedor(promissoria.valor, pagos)


@dataclass
class PagamentoDTO:
    data: Optional[date]
    nr_venda: str
    forma: str
    valor_pago: float

    def validate(self):
        if not self.data:
            raise ValueError('Informe a data do pagamento.')
        if not (self.nr_venda or '').strip():
            raise ValueError('Selecione o Nr Venda.')
        if not self.forma:
            raise ValueError('Selecione a forma de pagamento.')
        if self.forma not in FORMAS_PAGAMENTO:
            raise ValueError('Forma de pagamento inválida.')
        if not self.valor_pago or self.valor_pago <= 0:
            raise ValueError('Informe um valor pago maior que zero.')


def registrar_pagamento(dto: PagamentoDTO, hoje: date) -> PagamentoPromissoria:
    """Grava o pagamento e abate o saldo; a promissória zerada é excluída.

    Tudo é confirmado em um único commit.
    """
    dto.validate()

    prom = buscar_promissoria(dto.nr_venda)
    if prom is None:
        raise ValueError('Não foi possível localizar a promissória para este Nr Venda.')

    saldo = saldo_atual(prom)
    saldo_final = calcular_saldo_final(saldo, dto.valor_pago)
    atrasadas = calcular_parcelas_em_atraso(prom.data_inicio, prom.parcelas, hoje)

    pagamento = PagamentoPromissoria(
        data_pagamento=dto.data,
        nr_venda=prom.nr_venda,
        cliente=prom.cliente,
        forma_pagamento=dto.forma,
        parcelas_atrasadas=atrasadas,
        saldo_devedor=saldo,
        valor_pago=round(dto.valor_pago, 2),
        saldo_devedor_final=saldo_final,
    )
    db.session.add(pagamento)

    if saldo_final <= 0:
        db.session.delete(prom)
    else:
        prom.saldo_devedor = saldo_final
        prom.parcelas_atra = atrasadas
        prom.status = calcular_status(saldo_final, atrasadas)

    confirmar_sessao()

    logger.info('Pagamento de %.2f na venda %s; saldo final %.2f', dto.valor_pago, pagamento.nr_venda, saldo_final)
    return pagamento


def alternar_selecao(promissoria_id):
    prom = db.session.get(Promissoria, promissoria_id)
    if prom is None:
        return None
    prom.selecionado = not prom.selecionado
    confirmar_sessao()
    return prom


@dataclass
class ResultadoCobranca:
    enviados: List[str] = field(default_factory=list)
    sem_email: List[str] = field(default_factory=list)
    ja_enviados: List[str] = field(default_factory=list)
    whatsapp: List[dict] = field(default_factory=list)


def enviar_cobrancas(promissorias):
    """Envia a cobrança por e-mail para cada promissória selecionada.

    Promissórias sem e-mail ou já cobradas são puladas. Cada envio bem
    sucedido é marcado em `email_enviado` imediatamente, de modo que uma
    falha no meio do lote não faz reenviar os anteriores.
    """
    nome_loja = current_app.config['NOME_LOJA']
    resultado = ResultadoCobranca()

    for prom in promissorias:
        if not prom.selecionado:
            continue
        if not prom.email:
            logger.warning('Promissória %s sem e-mail cadastrado.', prom.nr_venda)
            resultado.sem_email.append(prom.nr_venda)
            continue
        if prom.email_enviado:
            resultado.ja_enviados.append(prom.nr_venda)
            continue

        corpo = montar_texto_cobranca(prom.cliente, prom.data_inicio, nome_loja)
        enviar_email(prom.email, assunto_cobranca(nome_loja), corpo)

        prom.email_enviado = True
        confirmar_sessao()
        resultado.enviados.append(prom.nr_venda)

        link = link_whatsapp(prom.telefone, corpo)
        if link:
            resultado.whatsapp.append({'nr_venda': prom.nr_venda, 'cliente': prom.cliente, 'link': link})

    return resultado
