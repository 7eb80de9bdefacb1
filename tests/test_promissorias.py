from datetime import date
from types import SimpleNamespace

from sistema_loja.promissorias import (
    ABERTO, PENDENTE, QUITADO,
    calcular_parcelas_em_atraso, calcular_status, calcular_saldo_devedor, calcular_saldo_final,
    avaliar, listar_em_aberto, consolidar_por_cliente, montar_texto_cobranca, assunto_cobranca,
)


def _mais_meses(d, n):
    total = d.year * 12 + (d.month - 1) + n
    return date(total // 12, total % 12 + 1, min(d.day, 28))


def _nota(**kwargs):
    dados = {'nr_venda': '250101-1', 'cliente': 'João', 'email': 'joao@example.com',
             'saldo_devedor': 300.0, 'data_inicio': date(2025, 1, 5), 'parcelas': 3}
    dados.update(kwargs)
    return SimpleNamespace(**dados)


def test_inicio_futuro_nao_tem_atraso():
    assert calcular_parcelas_em_atraso(date(2025, 6, 5), 10, date(2025, 6, 4)) == 0
    assert calcular_parcelas_em_atraso(date(2026, 1, 1), 10, date(2025, 6, 30)) == 0


def test_mes_de_inicio_conta_como_primeira_parcela():
    assert calcular_parcelas_em_atraso(date(2025, 3, 5), 10, date(2025, 3, 5)) == 1
    assert calcular_parcelas_em_atraso(date(2025, 1, 10), 10, date(2025, 3, 5)) == 3


def test_virada_de_ano():
    assert calcular_parcelas_em_atraso(date(2024, 11, 5), 12, date(2025, 2, 1)) == 4


def test_atraso_limitado_ao_total_de_parcelas():
    assert calcular_parcelas_em_atraso(date(2024, 1, 5), 3, date(2025, 1, 1)) == 3


def test_sem_parcelas_ou_sem_data():
    assert calcular_parcelas_em_atraso(date(2024, 1, 5), 0, date(2025, 1, 1)) == 0
    assert calcular_parcelas_em_atraso(None, 5, date(2025, 1, 1)) == 0


def test_aceita_datas_em_texto():
    assert calcular_parcelas_em_atraso('2025-01-05', 6, '2025-02-10T12:00:00') == 2
    assert calcular_parcelas_em_atraso('05/01/2025', 6, date(2025, 2, 10)) == 2


def test_atraso_nunca_diminui_e_nunca_passa_do_total():
    inicio = date(2024, 5, 20)
    for total in (1, 3, 12):
        anterior = 0
        for n in range(-6, 30):
            hoje = _mais_meses(inicio, n)
            atual = calcular_parcelas_em_atraso(inicio, total, hoje)
            assert anterior <= atual <= total
            anterior = atual


def test_status():
    assert calcular_status(0, 5) == QUITADO
    assert calcular_status(-10, 0) == QUITADO
    assert calcular_status(0.001, 3) == QUITADO
    assert calcular_status(10, 2) == PENDENTE
    assert calcular_status(10, 0) == ABERTO


def test_saldo_nao_positivo_sempre_quitado():
    for atrasadas in range(0, 20):
        assert calcular_status(0, atrasadas) == QUITADO


def test_saldo_devedor_abate_pagamentos():
    assert calcular_saldo_devedor(300, [100, 50]) == 150
    assert calcular_saldo_devedor(300, []) == 300
    assert calcular_saldo_devedor(100, [80, 80]) == 0


def test_saldo_final():
    assert calcular_saldo_final(150, 49.99) == 100.01
    assert calcular_saldo_final(150, 200) == 0


def test_avaliar_e_listar_em_aberto():
    hoje = date(2025, 2, 10)
    em_dia = _nota(nr_venda='1', data_inicio=date(2025, 3, 5))
    atrasada = _nota(nr_venda='2', data_inicio=date(2025, 1, 5))
    quitada = _nota(nr_venda='3', saldo_devedor=0.0)

    situacao = avaliar(atrasada, hoje)
    assert situacao.parcelas_atrasadas == 2
    assert situacao.status == PENDENTE

    abertas = listar_em_aberto([em_dia, atrasada, quitada], hoje)
    assert [s.promissoria.nr_venda for s in abertas] == ['1', '2']
    assert abertas[0].status == ABERTO

    so_atrasadas = listar_em_aberto([em_dia, atrasada, quitada], hoje, somente_atrasadas=True)
    assert [s.promissoria.nr_venda for s in so_atrasadas] == ['2']


def test_consolidar_por_cliente():
    hoje = date(2025, 2, 10)
    situacoes = [
        avaliar(_nota(nr_venda='1', cliente='Ana', saldo_devedor=100.0), hoje),
        avaliar(_nota(nr_venda='2', cliente='Bruno', saldo_devedor=40.0, data_inicio=date(2025, 5, 5)), hoje),
        avaliar(_nota(nr_venda='3', cliente='Ana', saldo_devedor=60.0), hoje),
    ]
    consolidado = consolidar_por_cliente(situacoes)
    assert consolidado[0] == {'cliente': 'Ana', 'email': 'joao@example.com', 'total': 160.0, 'atrasadas': 4}
    assert consolidado[1]['cliente'] == 'Bruno'
    assert consolidado[1]['atrasadas'] == 0


def test_texto_de_cobranca():
    texto = montar_texto_cobranca('Carlos', date(2025, 3, 5), 'Wolf Artigos Militares')
    assert texto.startswith('Bom dia Sr(a) Carlos,')
    assert 'realizada em 05/03/25.' in texto
    assert texto.endswith('Wolf Artigos Militares')

    assert 'Sr(a) cliente,' in montar_texto_cobranca('', None, 'Loja')
    assert assunto_cobranca('Loja X') == 'Lembrete de pendência - Loja X'
