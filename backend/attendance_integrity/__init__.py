"""Attendance & Scheduling Integrity Service - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
# Default limits come from RATELIMIT_DEFAULT
limiter = Limiter(key_func=get_remote_address)

def create_app(config_name: str = None, overrides: dict = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from attendance_integrity.config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Wire services onto the app
    setup_services(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Attendance Integrity Service',
            'version': '1.0.0'
        })

    return app

def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from attendance_integrity.api.schedules import schedules_bp
    from attendance_integrity.api.attendance import attendance_bp
    from attendance_integrity.api.supervisor import supervisor_bp
    from attendance_integrity.api.audit import audit_bp

    app.register_blueprint(schedules_bp, url_prefix='/api/schedules')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(supervisor_bp, url_prefix='/api/supervisor')
    app.register_blueprint(audit_bp, url_prefix='/api/audit')

def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from sqlalchemy.exc import OperationalError
    from werkzeug.exceptions import HTTPException
    from attendance_integrity.utils.exceptions import AttendanceCoreError
    from attendance_integrity.utils.helpers import handle_error, error_response

    @app.errorhandler(AttendanceCoreError)
    def handle_core_error(error):
        if error.status_code >= 500:
            db.session.rollback()
        return error_response(error.message, error.status_code, details=error.details)

    @app.errorhandler(OperationalError)
    def handle_storage_unavailable(error):
        db.session.rollback()
        app.logger.error(f"Storage unavailable: {error}")
        return error_response("Storage is temporarily unavailable, retry later", 503)

    @app.errorhandler(400)
    def bad_request(error):
        return handle_error(error, 400)

    @app.errorhandler(404)
    def not_found(error):
        return handle_error(error, 404)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error(error, 500)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e, e.code)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('Token has expired', 401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('Invalid token', 401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('Authorization token required', 401)

def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.info('Attendance Integrity Service startup')

def setup_services(app: Flask) -> None:
    """Build the service container and attach it to the app."""
    from attendance_integrity.services import build_services

    app.extensions['attendance_services'] = build_services(app, db.session)

def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click
    from attendance_integrity.utils.exceptions import ValidationError

    @app.cli.command()
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        # Import all models so their tables are registered
        from attendance_integrity import models  # noqa: F401

        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

    @app.cli.command()
    @click.option('--dry-run', is_flag=True, help='Report duplicates without merging')
    def reconcile_schedules(dry_run):
        """Merge duplicate schedule rows into the first one seen."""
        services = app.extensions['attendance_services']
        report = services.reconciler.run(dry_run=dry_run)

        for merge in report.merges:
            status = 'would merge' if dry_run else ('merged' if merge.merged else 'FAILED')
            click.echo(f'{status}: schedule {merge.duplicate_id} -> {merge.kept_id}')
        click.echo(
            f'Scanned {report.scanned} schedules, '
            f'{len(report.merges)} duplicates, {report.failed_count} failures.'
        )
        if report.failed_count:
            raise SystemExit(1)

    @app.cli.command()
    def verify_audit_chain():
        """Recompute every audit digest and report broken entries."""
        services = app.extensions['attendance_services']
        report = services.ledger.verify_chain()

        if report.is_valid:
            click.echo(f'Audit chain intact ({report.checked} entries).')
            return

        click.echo(f'Audit chain BROKEN at entries: {", ".join(map(str, report.broken_ids))}')
        raise SystemExit(1)

    @app.cli.command()
    @click.option('--retention-days', type=int, required=True, help='Days of audit history to keep')
    def cleanup_audit(retention_days):
        """Delete audit entries older than the retention horizon."""
        services = app.extensions['attendance_services']
        try:
            deleted = services.ledger.cleanup(retention_days)
        except ValidationError as e:
            raise click.BadParameter(e.message, param_hint='--retention-days')
        click.echo(f'Deleted {deleted} audit entries.')
