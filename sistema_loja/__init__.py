import os
from flask import Flask, render_template
from dotenv import load_dotenv
from sistema_loja.models import db
from sistema_loja.auth import login_manager, auth_bp
from sistema_loja.routes import main_bp
from sistema_loja.api import api_bp
from sistema_loja.notificacoes import mail
from sistema_loja.logger import configurar_logging
from sistema_loja.utils import format_datetime_local, formatar_real, formatar_data_br

load_dotenv()


def _env_bool(nome, padrao):
    return os.getenv(nome, padrao).lower() == 'true'


def create_app(test_config=None):
    app = Flask(__name__)

    nome_loja = os.getenv('NOME_LOJA', 'Wolf Artigos Militares')
    mail_username = os.getenv('MAIL_USERNAME') or os.getenv('EMAIL_LOJA')

    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///loja.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['NOME_LOJA'] = nome_loja
    app.config['TIMEZONE'] = os.getenv('TIMEZONE', 'America/Sao_Paulo')
    app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', os.path.join(app.root_path, 'static', 'uploads', 'produtos'))
    app.config['MAX_CONTENT_LENGTH'] = 5 * 1024 * 1024
    app.config['MAIL_SERVER'] = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    app.config['MAIL_PORT'] = int(os.getenv('MAIL_PORT', '587'))
    app.config['MAIL_USE_TLS'] = _env_bool('MAIL_USE_TLS', 'true')
    app.config['MAIL_USERNAME'] = mail_username
    app.config['MAIL_PASSWORD'] = os.getenv('MAIL_PASSWORD') or os.getenv('EMAIL_SENHA')
    app.config['MAIL_DEFAULT_SENDER'] = os.getenv('MAIL_DEFAULT_SENDER') or (nome_loja, mail_username)
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['LOG_FILE'] = os.getenv('LOG_FILE')

    if test_config:
        app.config.update(test_config)

    configurar_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp)

    app.jinja_env.filters['localtime'] = format_datetime_local
    app.jinja_env.filters['moeda'] = formatar_real
    app.jinja_env.filters['data_br'] = formatar_data_br

    @app.errorhandler(403)
    def acesso_negado(e):
        return render_template('403.html'), 403

    return app
