# app.py

from flask import Flask, g, request, jsonify
from flask_migrate import Migrate
from config import get_config
from extensions import db, login_manager, bcrypt, mail
import os
import uuid
from werkzeug.middleware.proxy_fix import ProxyFix
from logging_config import setup_logging, get_logger

# Configure logging as early as possible
setup_logging(app_name="leasing-crm", log_level=os.environ.get('LOG_LEVEL', 'INFO'))
logger = get_logger(__name__)


def init_sentry():
    """Initialize Sentry error tracking in production."""
    sentry_dsn = os.environ.get('SENTRY_DSN')
    if sentry_dsn and os.environ.get('FLASK_ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FlaskIntegration(transaction_style='endpoint'),
                SqlalchemyIntegration(),
            ],
            traces_sample_rate=0.1,
            environment=os.environ.get('FLASK_ENV', 'development'),
            release=os.environ.get('GIT_SHA', 'unknown')
        )
        logger.info("Sentry error tracking initialized")


init_sentry()


def create_app(config_name=None, test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)

    if test_config:
        app.config.update(test_config)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)
    Migrate(app, db)
    bcrypt.init_app(app)
    mail.init_app(app)

    # Server-side sessions need the database bound first
    config_class.init_app(app)

    app.services = _build_registry(app)

    # Initialize authentication
    login_manager.init_app(app)
    login_manager.login_view = None

    from crm_database import Profile

    @login_manager.user_loader
    def load_user(user_id):
        try:
            return db.session.get(Profile, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    # Request tracking
    @app.before_request
    def before_request():
        g.request_id = str(uuid.uuid4())
        logger.info("Request started", request_id=g.request_id,
                    method=request.method, path=request.path)

    @app.after_request
    def after_request(response):
        logger.info("Request completed",
                    request_id=getattr(g, 'request_id', None),
                    status_code=response.status_code)
        return response

    _register_error_handlers(app)

    # Health check endpoint - defined before blueprints, no auth
    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring"""
        from sqlalchemy import text
        health_status = {
            'status': 'healthy',
            'service': 'leasing-crm'
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['database'] = 'connected'
        except Exception as e:
            health_status['database'] = 'error'
            health_status['status'] = 'degraded'
            logger.error(f"Health check database error: {e}")

        return jsonify(health_status), 200 if health_status['status'] == 'healthy' else 503

    # Register blueprints for routes
    from routes.auth_routes import auth_bp
    from routes.invitation_routes import invitation_bp
    from routes.user_routes import user_bp
    from routes.webhook_routes import webhook_bp
    from routes.conversation_routes import conversation_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(invitation_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(conversation_bp)

    # Register CLI commands
    from scripts import commands
    commands.init_app(app)

    return app


def _register_error_handlers(app):
    def _json_error(status_code, message):
        return jsonify({'error': message}), status_code

    @app.errorhandler(400)
    def bad_request(error):
        return _json_error(400, 'Bad request')

    @app.errorhandler(401)
    def unauthorized(error):
        return _json_error(401, 'Unauthorized')

    @app.errorhandler(403)
    def forbidden(error):
        return _json_error(403, 'Forbidden')

    @app.errorhandler(404)
    def not_found_error(error):
        logger.warning("Not found", request_id=getattr(g, 'request_id', None), path=request.path)
        return _json_error(404, 'Not found')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _json_error(405, 'Method not allowed')

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error("Internal server error",
                     request_id=getattr(g, 'request_id', None),
                     error=str(error))
        return _json_error(500, 'Internal server error')


def _build_registry(app):
    """Register every repository, external client and service with explicit factories."""
    from services.service_registry_enhanced import create_enhanced_registry
    registry = create_enhanced_registry()
    config = app.config

    registry.register_factory('db_session', lambda: db.session)

    # Repositories
    repositories = {
        'organization_repository': ('repositories.organization_repository', 'OrganizationRepository'),
        'auth_identity_repository': ('repositories.auth_identity_repository', 'AuthIdentityRepository'),
        'profile_repository': ('repositories.profile_repository', 'ProfileRepository'),
        'role_repository': ('repositories.role_repository', 'RoleRepository'),
        'user_role_repository': ('repositories.role_repository', 'UserRoleRepository'),
        'invitation_repository': ('repositories.invitation_repository', 'InvitationRepository'),
        'property_repository': ('repositories.property_repository', 'PropertyRepository'),
        'property_assignment_repository': ('repositories.property_assignment_repository', 'PropertyAssignmentRepository'),
        'audit_log_repository': ('repositories.audit_log_repository', 'AuditLogRepository'),
        'contact_repository': ('repositories.contact_repository', 'ContactRepository'),
        'qualification_status_repository': ('repositories.qualification_status_repository', 'QualificationStatusRepository'),
        'conversation_repository': ('repositories.conversation_repository', 'ConversationRepository'),
        'message_repository': ('repositories.message_repository', 'MessageRepository'),
    }
    for name, (module_path, class_name) in repositories.items():
        registry.register_factory(
            name,
            _repository_factory(module_path, class_name),
            dependencies=['db_session']
        )

    # External clients, built from config
    registry.register_singleton('twilio_client', lambda: _create_twilio_client(config))
    registry.register_singleton('botpress_client', lambda: _create_botpress_client(config))

    # Services
    registry.register_singleton(
        'twilio',
        lambda twilio_client: _create_twilio_service(twilio_client, config),
        dependencies=['twilio_client']
    )
    registry.register_singleton('email', lambda: _create_email_service(config))
    registry.register_factory(
        'audit',
        _create_audit_service,
        dependencies=['audit_log_repository']
    )
    registry.register_factory(
        'identity',
        _create_identity_service,
        dependencies=['auth_identity_repository', 'profile_repository']
    )
    registry.register_factory(
        'property',
        _create_property_service,
        dependencies=['property_repository', 'property_assignment_repository']
    )
    registry.register_factory(
        'invitation',
        lambda **deps: _create_invitation_service(config, **deps),
        dependencies=[
            'invitation_repository', 'profile_repository', 'role_repository', 'user_role_repository',
            'property_repository', 'property_assignment_repository', 'identity', 'audit', 'email'
        ]
    )
    registry.register_factory(
        'user_management',
        _create_user_management_service,
        dependencies=[
            'profile_repository', 'role_repository', 'user_role_repository',
            'property_repository', 'property_assignment_repository', 'audit'
        ]
    )
    registry.register_factory(
        'conversation_bootstrap',
        lambda **deps: _create_conversation_bootstrap_service(config, **deps),
        dependencies=[
            'contact_repository', 'conversation_repository',
            'qualification_status_repository', 'botpress_client'
        ]
    )
    registry.register_factory(
        'lead_intake',
        lambda **deps: _create_lead_intake_service(config, **deps),
        dependencies=[
            'profile_repository', 'contact_repository', 'qualification_status_repository',
            'property', 'conversation_bootstrap'
        ]
    )
    registry.register_factory(
        'conversation',
        _create_conversation_service,
        dependencies=['contact_repository', 'conversation_repository', 'qualification_status_repository']
    )
    registry.register_factory(
        'inbound_message',
        _create_inbound_message_service,
        dependencies=['contact_repository', 'conversation_repository', 'message_repository', 'botpress_client']
    )
    registry.register_factory(
        'outbound_message',
        _create_outbound_message_service,
        dependencies=['conversation_repository', 'message_repository', 'twilio']
    )

    errors = registry.validate_dependencies()
    if errors:
        for error in errors:
            logger.error(f"Service dependency error: {error}")
        raise RuntimeError(f"Service dependency errors: {errors}")

    if app.debug:
        logger.debug(f"Service initialization order: {registry.get_initialization_order()}")

    return registry


# Service Factory Functions
# These are only called when the service is first requested

def _repository_factory(module_path, class_name):
    def factory(db_session):
        import importlib
        module = importlib.import_module(module_path)
        return getattr(module, class_name)(db_session)
    return factory


def _create_twilio_client(config):
    """twilio.rest.Client, or None when credentials are missing"""
    account_sid = config.get('TWILIO_ACCOUNT_SID')
    auth_token = config.get('TWILIO_AUTH_TOKEN')
    if not account_sid or not auth_token:
        logger.warning("Twilio credentials not configured; outbound SMS disabled")
        return None
    from twilio.rest import Client
    return Client(account_sid, auth_token)


def _create_botpress_client(config):
    from services.botpress_client import BotpressClient
    logger.info("Initializing BotpressClient")
    return BotpressClient(
        token=config.get('BOTPRESS_TOKEN'),
        bot_id=config.get('BOTPRESS_BOT_ID'),
        integration_id=config.get('BOTPRESS_INTEGRATION_ID'),
        base_url=config.get('BOTPRESS_API_URL') or 'https://api.botpress.cloud',
        webhook_url=config.get('BOTPRESS_WEBHOOK_URL'),
        timeout=config.get('BOTPRESS_TIMEOUT', 10)
    )


def _create_twilio_service(twilio_client, config):
    from services.twilio_service import TwilioService
    return TwilioService(
        client=twilio_client,
        auth_token=config.get('TWILIO_AUTH_TOKEN'),
        from_number=config.get('TWILIO_PHONE_NUMBER')
    )


def _create_email_service(config):
    from services.email_service import EmailService, EmailConfig
    logger.info("Initializing EmailService")
    return EmailService(
        mail_client=mail,
        config=EmailConfig(
            server=config.get('MAIL_SERVER'),
            port=config.get('MAIL_PORT', 587),
            use_tls=config.get('MAIL_USE_TLS', True),
            use_ssl=config.get('MAIL_USE_SSL', False),
            username=config.get('MAIL_USERNAME'),
            password=config.get('MAIL_PASSWORD'),
            default_sender=config.get('MAIL_DEFAULT_SENDER'),
            suppress_send=config.get('MAIL_SUPPRESS_SEND', False)
        ),
        app_name=config.get('APP_NAME', 'Leasing CRM')
    )


def _create_audit_service(audit_log_repository):
    from services.audit_service import AuditService
    return AuditService(audit_log_repository=audit_log_repository)


def _create_identity_service(auth_identity_repository, profile_repository):
    from services.identity_service import IdentityService
    return IdentityService(
        password_hasher=bcrypt,
        identity_repository=auth_identity_repository,
        profile_repository=profile_repository
    )


def _create_property_service(property_repository, property_assignment_repository):
    from services.property_service import PropertyService
    return PropertyService(
        property_repository=property_repository,
        property_assignment_repository=property_assignment_repository
    )


def _create_invitation_service(config, invitation_repository, profile_repository, role_repository,
                               user_role_repository, property_repository, property_assignment_repository,
                               identity, audit, email):
    from services.invitation_service import InvitationService
    logger.info("Initializing InvitationService")
    return InvitationService(
        invitation_repository=invitation_repository,
        profile_repository=profile_repository,
        role_repository=role_repository,
        user_role_repository=user_role_repository,
        property_repository=property_repository,
        property_assignment_repository=property_assignment_repository,
        identity_service=identity,
        audit_service=audit,
        email_service=email,
        base_url=config.get('APP_BASE_URL'),
        expiry_days=config.get('INVITATION_EXPIRY_DAYS', 7),
        min_password_length=config.get('MIN_PASSWORD_LENGTH', 8)
    )


def _create_user_management_service(profile_repository, role_repository, user_role_repository,
                                    property_repository, property_assignment_repository, audit):
    from services.user_management_service import UserManagementService
    return UserManagementService(
        profile_repository=profile_repository,
        role_repository=role_repository,
        user_role_repository=user_role_repository,
        property_repository=property_repository,
        property_assignment_repository=property_assignment_repository,
        audit_service=audit
    )


def _create_conversation_bootstrap_service(config, contact_repository, conversation_repository,
                                           qualification_status_repository, botpress_client):
    from services.conversation_bootstrap_service import ConversationBootstrapService
    return ConversationBootstrapService(
        contact_repository=contact_repository,
        conversation_repository=conversation_repository,
        qualification_status_repository=qualification_status_repository,
        botpress_client=botpress_client,
        assistant_name=config.get('ASSISTANT_NAME', 'Alex')
    )


def _create_lead_intake_service(config, profile_repository, contact_repository,
                                qualification_status_repository, property, conversation_bootstrap):
    from services.lead_intake_service import LeadIntakeService
    return LeadIntakeService(
        profile_repository=profile_repository,
        contact_repository=contact_repository,
        qualification_status_repository=qualification_status_repository,
        property_service=property,
        bootstrap_service=conversation_bootstrap,
        outreach_timeout=config.get('OUTREACH_TIMEOUT', 10)
    )


def _create_conversation_service(contact_repository, conversation_repository, qualification_status_repository):
    from services.conversation_service import ConversationService
    return ConversationService(
        contact_repository=contact_repository,
        conversation_repository=conversation_repository,
        qualification_status_repository=qualification_status_repository
    )


def _create_inbound_message_service(contact_repository, conversation_repository,
                                    message_repository, botpress_client):
    from services.inbound_message_service import InboundMessageService
    return InboundMessageService(
        contact_repository=contact_repository,
        conversation_repository=conversation_repository,
        message_repository=message_repository,
        botpress_client=botpress_client
    )


def _create_outbound_message_service(conversation_repository, message_repository, twilio):
    from services.outbound_message_service import OutboundMessageService
    return OutboundMessageService(
        conversation_repository=conversation_repository,
        message_repository=message_repository,
        twilio_service=twilio
    )
