import re
from datetime import date, datetime, timezone

import pytz
from flask import current_app

FUSO_PADRAO = 'America/Sao_Paulo'


def fuso_loja():
    try:
        nome = current_app.config.get('TIMEZONE', FUSO_PADRAO)
    except RuntimeError:
        nome = FUSO_PADRAO
    return pytz.timezone(nome)


def hoje_local():
    """Data de hoje no fuso horário da loja."""
    return datetime.now(fuso_loja()).date()


def format_datetime_local(dt):
    if dt is None:
        return ''
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    local_dt = dt.astimezone(fuso_loja())
    return local_dt.strftime('%d/%m/%y %H:%M')


def formatar_real(valor):
    n = to_float(valor)
    texto = f'{abs(n):,.2f}'.replace(',', '_').replace('.', ',').replace('_', '.')
    sinal = '-' if n < 0 else ''
    return f'{sinal}R$ {texto}'


def formatar_data_br(valor):
    d = parse_data(valor)
    if d is None:
        return ''
    return d.strftime('%d/%m/%Y')


def parse_data(valor):
    """Converte date, datetime ou texto (AAAA-MM-DD[...] ou DD/MM/AAAA) em date.

    Retorna None quando o valor não puder ser interpretado.
    """
    if not valor:
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    if not isinstance(valor, str):
        return None

    s = valor.strip()
    if re.match(r'^\d{4}-\d{2}-\d{2}', s):
        try:
            return datetime.strptime(s[:10], '%Y-%m-%d').date()
        except ValueError:
            return None
    if re.match(r'^\d{2}/\d{2}/\d{4}$', s):
        try:
            return datetime.strptime(s, '%d/%m/%Y').date()
        except ValueError:
            return None
    return None


def normalizar_data(valor):
    d = parse_data(valor)
    return d.isoformat() if d else ''


def filtros_periodo(model, data_field, inicio=None, fim=None):
    filtros = []
    coluna = getattr(model, data_field)
    if inicio:
        filtros.append(coluna >= inicio)
    if fim:
        filtros.append(coluna <= fim)
    return filtros


def to_float(valor, default=0.0):
    """Aceita '1234.5', '1234,5', '1.234,50' e '1.234' (ponto como milhar quando seguido de grupos de 3 dígitos)."""
    if isinstance(valor, str):
        valor = valor.strip()
        if ',' in valor or re.match(r'^-?\d{1,3}(\.\d{3})+$', valor):
            valor = valor.replace('.', '').replace(',', '.')
    try:
        return float(valor)
    except (TypeError, ValueError):
        return default


def to_int(valor, default=0):
    try:
        return int(valor)
    except (TypeError, ValueError):
        return default
