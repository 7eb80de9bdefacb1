import csv
import io
import logging
import os
from smtplib import SMTPException
from uuid import uuid4

from flask import (
    render_template, request, redirect, url_for, flash, Blueprint, Response, current_app,
    send_from_directory,
)
from flask_login import login_required, current_user
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from sistema_loja import estoque
from sistema_loja.logger import log_error
from sistema_loja.models import (
    db, Produto, Lancamento, Promissoria, PagamentoPromissoria, Usuario, PERFIS, LOCAIS,
)
from sistema_loja.auth import perfil_required
from sistema_loja.notificacoes import EmailNaoConfiguradoError
from sistema_loja.promissorias import (
    listar_em_aberto, consolidar_por_cliente, calcular_parcelas_em_atraso,
)
from sistema_loja.recebimentos import (
    FORMAS_PAGAMENTO, PagamentoDTO, registrar_pagamento, alternar_selecao, enviar_cobrancas,
    buscar_promissoria, saldo_atual,
)
from sistema_loja.utils import (
    filtros_periodo, hoje_local, normalizar_data, parse_data, to_float, to_int,
)
from sistema_loja.vendas import (
    FORMAS_VENDA, TIPOS_COMPRA, VendaDTO, CompraDTO, OutroLancamentoDTO,
    EstoqueInsuficienteError, registrar_venda, registrar_compra, registrar_outro_lancamento,
)

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)

EXTENSOES_FOTO = {'png', 'jpg', 'jpeg', 'gif', 'webp'}


def _erro_banco(msg, e):
    db.session.rollback()
    log_error(logger, msg, e)
    flash(f'{msg}. Tente novamente.', 'danger')


@main_bp.route('/')
@login_required
def index():
    hoje = hoje_local()
    total_bruto = db.session.query(func.coalesce(func.sum(Lancamento.valor_bruto), 0.0)).filter(
        Lancamento.tipo == 'VENDA'
    ).scalar() or 0.0
    total_vendas = Lancamento.query.filter_by(tipo='VENDA').count()

    em_aberto = listar_em_aberto(Promissoria.query.all(), hoje)
    total_a_receber = sum(s.saldo for s in em_aberto)

    return render_template(
        'index.html',
        total_bruto=total_bruto,
        total_vendas=total_vendas,
        promissorias_abertas=len(em_aberto),
        total_a_receber=total_a_receber,
        alertas_estoque=estoque.produtos_abaixo_minimo(),
    )


# --- Vendas ---

def _render_vendas(form=None):
    return render_template(
        'vendas.html',
        produtos=estoque.produtos_disponiveis(),
        formas=FORMAS_VENDA,
        form=form or {},
        hoje=hoje_local().isoformat(),
    )


@main_bp.route('/vendas', methods=['GET', 'POST'])
@login_required
def vendas():
    if request.method == 'POST':
        dto = VendaDTO(
            data=parse_data(request.form.get('data')),
            cod_produto=request.form.get('cod_produto', ''),
            qtde=to_int(request.form.get('qtde')),
            forma=request.form.get('forma', 'PIX'),
            desconto=to_float(request.form.get('desconto')),
            juros=to_float(request.form.get('juros')),
            nr_venda=request.form.get('nr_venda', ''),
            parcelas=to_int(request.form.get('parcelas'), 1),
            inicio_pagamento=parse_data(request.form.get('inicio_pagamento')),
            cliente=request.form.get('cliente', '').strip(),
            email=request.form.get('email', '').strip(),
            telefone=request.form.get('telefone', '').strip(),
            confirmar_estoque=bool(request.form.get('confirmar_estoque')),
        )
        try:
            lancamento = registrar_venda(dto, vendedor=current_user.nome_exibicao)
        except EstoqueInsuficienteError as e:
            flash(str(e), 'warning')
            return _render_vendas(form=request.form)
        except ValueError as e:
            flash(str(e), 'danger')
            return _render_vendas(form=request.form)
        except SQLAlchemyError as e:
            _erro_banco('Erro ao registrar a venda', e)
            return _render_vendas(form=request.form)

        flash(f'Venda {lancamento.nr_venda} registrada com sucesso!', 'success')
        return redirect(url_for('main.vendas'))

    return _render_vendas()


@main_bp.route('/vendas/outros', methods=['POST'])
@login_required
def outros_lancamentos():
    dto = OutroLancamentoDTO(
        data=parse_data(request.form.get('data')),
        tipo=request.form.get('tipo', ''),
        valor=to_float(request.form.get('valor')),
        descricao=request.form.get('descricao', ''),
        cod_produto=request.form.get('cod_produto', ''),
        qtde=to_int(request.form.get('qtde')),
    )
    try:
        registrar_outro_lancamento(dto, usuario=current_user.nome_exibicao)
        flash('Lançamento registrado com sucesso!', 'success')
    except ValueError as e:
        flash(str(e), 'danger')
    except SQLAlchemyError as e:
        _erro_banco('Erro ao registrar o lançamento', e)
    return redirect(url_for('main.vendas'))


# --- Histórico ---

def _filtrar_historico():
    inicio = parse_data(request.args.get('inicio'))
    fim = parse_data(request.args.get('fim'))
    forma = (request.args.get('forma') or '').strip()

    query = Lancamento.query.filter(*filtros_periodo(Lancamento, 'data', inicio, fim))
    if forma and forma.upper() != 'TODOS':
        query = query.filter(func.upper(Lancamento.forma) == forma.upper())

    lancamentos = query.order_by(Lancamento.data, Lancamento.id).all()
    filtros = {'inicio': normalizar_data(inicio), 'fim': normalizar_data(fim), 'forma': forma}
    return lancamentos, filtros


@main_bp.route('/historico')
@login_required
def historico():
    lancamentos, filtros = _filtrar_historico()
    total = sum(l.valor_final for l in lancamentos if l.tipo == 'VENDA')
    return render_template('historico.html', lancamentos=lancamentos, filtros=filtros,
                           formas=FORMAS_VENDA, total=total)


@main_bp.route('/historico/csv')
@login_required
def historico_csv():
    lancamentos, _ = _filtrar_historico()
    if not lancamentos:
        flash('Não há dados no histórico com os filtros atuais.', 'warning')
        return redirect(url_for('main.historico', **request.args))

    saida = io.StringIO()
    writer = csv.writer(saida, delimiter=';', lineterminator='\n')
    writer.writerow(['Data', 'Tipo', 'Nr Venda', 'Forma Pgto', 'Produto', 'Qtde', 'Valor Final da Venda'])
    for l in lancamentos:
        writer.writerow([
            normalizar_data(l.data),
            l.tipo or '',
            l.nr_venda or '',
            l.forma or '',
            l.produto or '',
            l.qtde if l.qtde is not None else '',
            f'{l.valor_final:.2f}'.replace('.', ','),
        ])

    nome_arquivo = f'historico_lancamentos_{hoje_local().isoformat()}.csv'
    return Response(
        saida.getvalue(),
        mimetype='text/csv; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename={nome_arquivo}'},
    )


# --- Inventário ---

@main_bp.route('/inventario')
@login_required
def inventario():
    local = request.args.get('local', 'TODOS')
    if local not in LOCAIS:
        local = 'TODOS'
    ate = parse_data(request.args.get('data')) or hoje_local()

    resultado = estoque.inventario(ate=ate, local=local)
    return render_template('inventario.html', linhas=resultado['linhas'], totais=resultado['totais'],
                           local=local, data=ate.isoformat())


# --- Produtos / Compras ---

def _salvar_foto(arquivo):
    nome = secure_filename(arquivo.filename or '')
    extensao = nome.rsplit('.', 1)[-1].lower() if '.' in nome else ''
    if extensao not in EXTENSOES_FOTO:
        raise ValueError('Formato de imagem inválido.')
    pasta = current_app.config['UPLOAD_FOLDER']
    os.makedirs(pasta, exist_ok=True)
    nome_final = f'{uuid4().hex}.{extensao}'
    arquivo.save(os.path.join(pasta, nome_final))
    return url_for('main.foto_produto', filename=nome_final)


@main_bp.route('/uploads/produtos/<path:filename>')
@login_required
def foto_produto(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)


@main_bp.route('/produtos', methods=['GET', 'POST'])
@login_required
def produtos():
    if request.method == 'POST':
        cod = request.form.get('cod_produto', '').strip()
        nome = request.form.get('nome', '').strip()
        if not cod or not nome:
            flash('Preencha pelo menos código e nome do produto.', 'danger')
            return redirect(url_for('main.produtos'))

        try:
            foto_url = request.form.get('foto_url', '').strip() or None
            arquivo = request.files.get('foto')
            if arquivo and arquivo.filename:
                foto_url = _salvar_foto(arquivo)

            produto = estoque.buscar_produto(cod)
            if produto is None:
                produto = Produto(cod_produto=cod)
                db.session.add(produto)
            produto.nome = nome
            produto.fornecedor = estoque.limpar_fornecedor(request.form.get('fornecedor', '').strip())
            produto.estoque_minimo = to_int(request.form.get('estoque_minimo'))
            produto.valor_unitario = to_float(request.form.get('valor_unitario'))
            if foto_url:
                produto.foto_url = foto_url
            db.session.commit()
            logger.info('Produto %s salvo por %s', cod, current_user.login)
            flash('Produto salvo/atualizado com sucesso!', 'success')
        except ValueError as e:
            flash(str(e), 'danger')
        except SQLAlchemyError as e:
            _erro_banco('Erro ao salvar produto', e)
        return redirect(url_for('main.produtos', cod=cod))

    query = request.args.get('q')
    produtos_query = Produto.query
    if query:
        produtos_query = produtos_query.filter(Produto.nome.ilike(f'%{query}%'))
    lista = produtos_query.order_by(Produto.nome).all()

    selecionado = estoque.buscar_produto(request.args.get('cod'))
    saldos = estoque.saldos_por_produto()
    return render_template('produtos.html', produtos=lista, selecionado=selecionado, saldos=saldos,
                           query=query, tipos_compra=TIPOS_COMPRA, hoje=hoje_local().isoformat())


@main_bp.route('/compras', methods=['POST'])
@login_required
def compras():
    dto = CompraDTO(
        data=parse_data(request.form.get('data')),
        cod_produto=request.form.get('cod_produto', ''),
        qtde=to_int(request.form.get('qtde')),
        tipo_transacao=request.form.get('tipo_transacao', 'COMPRA_DEPOSITO'),
        fornecedor=request.form.get('fornecedor', '').strip(),
        confirmar_estoque=bool(request.form.get('confirmar_estoque')),
    )
    try:
        registrar_compra(dto, usuario=current_user.nome_exibicao)
        flash('Compra / reposição registrada com sucesso!', 'success')
    except EstoqueInsuficienteError as e:
        flash(str(e), 'warning')
    except ValueError as e:
        flash(str(e), 'danger')
    except SQLAlchemyError as e:
        _erro_banco('Erro ao registrar movimentação de estoque', e)
    return redirect(url_for('main.produtos'))


# --- Promissórias ---

def _render_promissorias(resultado=None):
    somente_atrasadas = request.values.get('atrasadas') == '1'
    situacoes = listar_em_aberto(
        Promissoria.query.order_by(Promissoria.data_inicio, Promissoria.id).all(),
        hoje_local(),
        somente_atrasadas=somente_atrasadas,
    )
    return render_template(
        'promissorias.html',
        situacoes=situacoes,
        consolidado=consolidar_por_cliente(situacoes),
        somente_atrasadas=somente_atrasadas,
        resultado=resultado,
    )


@main_bp.route('/promissorias')
@login_required
def promissorias():
    return _render_promissorias()


@main_bp.route('/promissorias/<int:id>/selecionar', methods=['POST'])
@login_required
def selecionar_promissoria(id):
    try:
        if alternar_selecao(id) is None:
            flash('Promissória não encontrada.', 'danger')
    except SQLAlchemyError as e:
        _erro_banco('Erro ao atualizar seleção da promissória', e)
    return redirect(url_for('main.promissorias', atrasadas=request.form.get('atrasadas')))


@main_bp.route('/promissorias/enviar', methods=['POST'])
@login_required
def enviar_promissorias():
    selecionadas = Promissoria.query.filter_by(selecionado=True).order_by(Promissoria.id).all()
    if not selecionadas:
        flash('Nenhuma promissória selecionada.', 'warning')
        return redirect(url_for('main.promissorias'))

    try:
        resultado = enviar_cobrancas(selecionadas)
    except (EmailNaoConfiguradoError, SMTPException, OSError) as e:
        log_error(logger, 'Erro ao enviar e-mails de cobrança', e)
        flash('Erro ao enviar e-mails. Verifique o log para detalhes.', 'danger')
        return redirect(url_for('main.promissorias'))

    flash('Processo de envio concluído (verifique e-mails/WhatsApp).', 'success')
    return _render_promissorias(resultado=resultado)


# --- Pagamentos (ADM) ---

@main_bp.route('/pagamentos', methods=['GET', 'POST'])
@login_required
@perfil_required('ADM')
def pagamentos():
    hoje = hoje_local()
    if request.method == 'POST':
        dto = PagamentoDTO(
            data=parse_data(request.form.get('data')),
            nr_venda=request.form.get('nr_venda', ''),
            forma=request.form.get('forma', ''),
            valor_pago=to_float(request.form.get('valor_pago')),
        )
        try:
            pagamento = registrar_pagamento(dto, hoje)
            if pagamento.saldo_devedor_final <= 0:
                flash(f'Pagamento registrado. Promissória {pagamento.nr_venda} quitada.', 'success')
            else:
                flash('Pagamento registrado com sucesso.', 'success')
            return redirect(url_for('main.pagamentos'))
        except ValueError as e:
            flash(str(e), 'danger')
        except SQLAlchemyError as e:
            _erro_banco('Erro ao salvar o pagamento', e)

    nr_venda = request.values.get('nr_venda', '')
    selecionada = buscar_promissoria(nr_venda)
    resumo = None
    if selecionada:
        resumo = {
            'cliente': selecionada.cliente,
            'parcelas_atrasadas': calcular_parcelas_em_atraso(selecionada.data_inicio, selecionada.parcelas, hoje),
            'saldo_devedor': saldo_atual(selecionada),
        }

    return render_template(
        'pagamentos.html',
        promissorias=Promissoria.query.order_by(Promissoria.id).all(),
        pagamentos=PagamentoPromissoria.query.order_by(
            PagamentoPromissoria.data_pagamento.desc(), PagamentoPromissoria.id.desc()
        ).all(),
        formas=FORMAS_PAGAMENTO,
        nr_venda=nr_venda,
        resumo=resumo,
        hoje=hoje.isoformat(),
    )


# --- Usuários (ADM) ---

@main_bp.route('/usuarios', methods=['GET', 'POST'])
@login_required
@perfil_required('ADM')
def usuarios():
    if request.method == 'POST':
        login = request.form.get('login', '').strip()
        nome = request.form.get('nome', '').strip()
        senha = request.form.get('senha', '')
        perfil = request.form.get('perfil', 'VENDA')

        if not login or not nome or not senha:
            flash('Preencha login, nome e senha.', 'danger')
        elif perfil not in PERFIS:
            flash('Perfil inválido.', 'danger')
        elif Usuario.query.filter(func.lower(Usuario.login) == login.lower()).first():
            flash('Já existe um usuário com esse login.', 'danger')
        else:
            try:
                novo = Usuario(login=login, nome=nome, perfil=perfil)
                novo.definir_senha(senha)
                db.session.add(novo)
                db.session.commit()
                logger.info('Usuário %s criado por %s', login, current_user.login)
                flash('Usuário criado com sucesso!', 'success')
            except SQLAlchemyError as e:
                _erro_banco('Erro ao criar usuário', e)
        return redirect(url_for('main.usuarios'))

    return render_template('usuarios.html', usuarios=Usuario.query.order_by(Usuario.login).all(), perfis=PERFIS)


@main_bp.route('/usuarios/<int:id>/senha', methods=['POST'])
@login_required
@perfil_required('ADM')
def alterar_senha(id):
    usuario = db.get_or_404(Usuario, id)
    nova_senha = request.form.get('senha', '')
    if not nova_senha:
        flash('Informe a nova senha.', 'danger')
        return redirect(url_for('main.usuarios'))
    try:
        usuario.definir_senha(nova_senha)
        db.session.commit()
        flash('Senha atualizada com sucesso!', 'success')
    except SQLAlchemyError as e:
        _erro_banco('Erro ao atualizar senha', e)
    return redirect(url_for('main.usuarios'))


@main_bp.route('/usuarios/<int:id>/delete', methods=['POST'])
@login_required
@perfil_required('ADM')
def excluir_usuario(id):
    usuario = db.get_or_404(Usuario, id)
    if usuario.id == current_user.id:
        flash('Você não pode excluir o próprio usuário.', 'danger')
        return redirect(url_for('main.usuarios'))
    try:
        db.session.delete(usuario)
        db.session.commit()
        logger.info('Usuário %s excluído por %s', usuario.login, current_user.login)
        flash('Usuário excluído com sucesso!', 'success')
    except SQLAlchemyError as e:
        _erro_banco('Erro ao excluir usuário', e)
    return redirect(url_for('main.usuarios'))
