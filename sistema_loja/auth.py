import logging
from functools import wraps

from flask import render_template, request, redirect, url_for, flash, Blueprint, abort
from flask_login import LoginManager, login_user, logout_user, current_user
from sqlalchemy import func

from sistema_loja.models import db, Usuario

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

login_manager = LoginManager()
login_manager.login_view = 'auth.login'
login_manager.login_message = 'Faça login para continuar.'
login_manager.login_message_category = 'info'


@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(Usuario, int(user_id))
    except (TypeError, ValueError):
        return None


def perfil_required(*perfis):
    """Restringe a rota aos perfis informados (ex.: 'ADM')."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if current_user.perfil not in perfis:
                abort(403)
            return view(*args, **kwargs)
        return wrapper
    return decorator


def autenticar(login, senha):
    login = (login or '').strip().lower()
    if not login or not senha:
        return None
    usuario = Usuario.query.filter(func.lower(Usuario.login) == login).first()
    if usuario and usuario.check_password(senha):
        return usuario
    return None


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('main.index'))
    if request.method == 'POST':
        usuario = autenticar(request.form.get('login'), request.form.get('senha'))

        if usuario:
            login_user(usuario, remember=True)
            logger.info('Login de %s (%s)', usuario.login, usuario.perfil)
            next_page = request.args.get('next')
            if not next_page or not next_page.startswith('/') or next_page.startswith('//'):
                next_page = url_for('main.index')
            return redirect(next_page)
        else:
            logger.warning('Falha de login para %r', request.form.get('login'))
            flash('Usuário ou senha inválidos.', 'danger')
    return render_template('login.html')


@auth_bp.route('/logout')
def logout():
    logout_user()
    flash('Você foi desconectado.', 'info')
    return redirect(url_for('auth.login'))
