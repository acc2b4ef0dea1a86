# tests/conftest.py
"""
Shared fixtures for the pytest suite.

Every test gets a fresh app bound to an in-memory SQLite database. External
collaborators (chat platform, SMS, email) are swapped for mocks in the
service registry before anything resolves them, so no test talks to the
network.
"""
import os
import pytest
from unittest.mock import Mock

from app import create_app
from extensions import db, bcrypt
from crm_database import (
    Organization, AuthIdentity, Profile, Role, UserRole, Property,
    Contact, QualificationStatus, Conversation
)
from services.botpress_client import BotpressClient
from services.twilio_service import TwilioService
from services.email_service import EmailService
from services.common.result import Result

DEFAULT_PASSWORD = 'correct-horse-battery'


@pytest.fixture
def app():
    """A new Flask application with its own database for each test."""
    os.environ['FLASK_ENV'] = 'testing'
    app = create_app(config_name='testing')

    botpress = Mock(spec=BotpressClient)
    botpress.get_or_create_user.return_value = 'bp-user-1'
    botpress.create_conversation.return_value = 'bp-conv-1'
    botpress.create_message.return_value = 'bp-msg-1'
    app.services.register('botpress_client', service=botpress)

    twilio = Mock(spec=TwilioService)
    twilio.send_sms.return_value = Result.success({'sid': 'SM123', 'status': 'queued'})
    twilio.validate_signature.return_value = True
    app.services.register('twilio', service=twilio)

    email = Mock(spec=EmailService)
    email.send_invitation_email.return_value = (True, 'Email sent successfully')
    app.services.register('email', service=email)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def botpress_client(app):
    return app.services.get('botpress_client')


@pytest.fixture
def twilio_service(app):
    return app.services.get('twilio')


@pytest.fixture
def email_service(app):
    return app.services.get('email')


# --- Seed helpers ---

def create_profile(organization, email, role=None, status='active', password=DEFAULT_PASSWORD,
                   first_name='Test', last_name='User', **kwargs):
    """Identity + profile (+ role) committed in one go."""
    identity = AuthIdentity(
        email=email,
        password_hash=bcrypt.generate_password_hash(password).decode('utf-8')
    )
    db.session.add(identity)
    db.session.flush()

    profile = Profile(
        id=identity.id,
        email=email,
        organization_id=organization.id,
        status=status,
        first_name=first_name,
        last_name=last_name,
        full_name=f'{first_name} {last_name}',
        **kwargs
    )
    db.session.add(profile)
    db.session.flush()

    if role is not None:
        db.session.add(UserRole(user_id=profile.id, organization_id=organization.id, role_id=role.id))
    db.session.commit()
    return profile


def create_contact(organization, owner, phone='5551234567', automation_enabled=True, **kwargs):
    contact = Contact(
        organization_id=organization.id,
        user_id=owner.id if owner else None,
        name=kwargs.pop('name', 'Jane Renter'),
        first_name=kwargs.pop('first_name', 'Jane'),
        last_name=kwargs.pop('last_name', 'Renter'),
        email=kwargs.pop('email', 'jane@renter.com'),
        phone=phone,
        **kwargs
    )
    db.session.add(contact)
    db.session.flush()
    db.session.add(QualificationStatus(
        contact_id=contact.id,
        qualification_status='not_started',
        qualification_progress=0,
        automation_enabled=automation_enabled
    ))
    db.session.commit()
    return contact


def create_conversation(contact, status='active', bootstrapped=True, **kwargs):
    conversation = Conversation(
        contact_id=contact.id,
        organization_id=contact.organization_id,
        user_id=contact.user_id,
        phone_number=contact.phone,
        conversation_status=status,
        botpress_conversation_id='bp-conv-1' if bootstrapped else None,
        botpress_user_id='bp-user-1' if bootstrapped else None,
        **kwargs
    )
    db.session.add(conversation)
    db.session.commit()
    return conversation


@pytest.fixture
def organization(app):
    org = Organization(name='Acme Rentals')
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def other_organization(app):
    org = Organization(name='Other Rentals')
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def roles(app):
    admin = Role(name='admin', description='Administrator', permissions=[])
    user = Role(name='user', description='Agent', permissions=[])
    db.session.add_all([admin, user])
    db.session.commit()
    return {'admin': admin, 'user': user}


@pytest.fixture
def admin_user(organization, roles):
    return create_profile(organization, 'admin@acme.com', role=roles['admin'],
                          first_name='Ada', last_name='Admin')


@pytest.fixture
def agent_user(organization, roles):
    return create_profile(organization, 'agent@acme.com', role=roles['user'],
                          first_name='Al', last_name='Agent')


@pytest.fixture
def property_row(organization):
    prop = Property(organization_id=organization.id, address='12 Main St', zip_code='07030',
                    city='Hoboken', state='NJ', status='active')
    db.session.add(prop)
    db.session.commit()
    return prop


def login(client, email, password=DEFAULT_PASSWORD):
    return client.post('/api/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def admin_client(client, admin_user):
    response = login(client, admin_user.email)
    assert response.status_code == 200
    return client


@pytest.fixture
def agent_client(client, agent_user):
    response = login(client, agent_user.email)
    assert response.status_code == 200
    return client
