# Configuração de logging da aplicação

import logging

FORMATO = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FORMATO_DATA = '%Y-%m-%d %H:%M:%S'


def configurar_logging(app):
    """Liga os handlers de console (e arquivo, se LOG_FILE estiver definido) ao logger do pacote."""
    nivel = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    logger = logging.getLogger('sistema_loja')
    logger.setLevel(nivel)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(FORMATO, FORMATO_DATA))
        logger.addHandler(console_handler)

        log_file = app.config.get('LOG_FILE')
        if log_file:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(FORMATO, FORMATO_DATA))
            logger.addHandler(file_handler)

    return logger


def log_error(logger, msg, exc=None):
    """Registra erro com traceback quando houver exceção."""
    if exc:
        logger.error(f'{msg}: {exc}', exc_info=True)
    else:
        logger.error(msg)
