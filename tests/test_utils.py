from datetime import date, datetime

from sistema_loja.utils import formatar_real, normalizar_data, parse_data, to_float, to_int


def test_to_float_aceita_notacao_brasileira():
    assert to_float('1.234,56') == 1234.56
    assert to_float('10,5') == 10.5
    assert to_float('1.234') == 1234.0
    assert to_float('1.234.567') == 1234567.0
    assert to_float('-2.500') == -2500.0


def test_to_float_ponto_decimal():
    assert to_float('49.99') == 49.99
    assert to_float('1.5') == 1.5
    assert to_float('1234.5') == 1234.5
    assert to_float(7) == 7.0


def test_to_float_valor_invalido_usa_padrao():
    assert to_float('') == 0.0
    assert to_float(None) == 0.0
    assert to_float('abc', default=-1.0) == -1.0


def test_to_int():
    assert to_int('3') == 3
    assert to_int('', 1) == 1
    assert to_int(None) == 0


def test_parse_data():
    assert parse_data('2025-03-07') == date(2025, 3, 7)
    assert parse_data('2025-03-07T10:30:00') == date(2025, 3, 7)
    assert parse_data('07/03/2025') == date(2025, 3, 7)
    assert parse_data(datetime(2025, 3, 7, 23, 59)) == date(2025, 3, 7)
    assert parse_data('31/02/2025') is None
    assert parse_data('ontem') is None
    assert normalizar_data('07/03/2025') == '2025-03-07'
    assert normalizar_data(None) == ''


def test_formatar_real():
    assert formatar_real(1234.5) == 'R$ 1.234,50'
    assert formatar_real(-10) == '-R$ 10,00'
    assert formatar_real('abc') == 'R$ 0,00'
