# crm_database.py

from extensions import db
from flask_login import UserMixin
from utils.datetime_utils import utc_now, format_utc_iso


# --- Tenancy ---
class Organization(db.Model):
    __tablename__ = 'organizations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


# --- Authentication identity (credential only) ---
class AuthIdentity(db.Model):
    __tablename__ = 'auth_identity'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    last_sign_in_at = db.Column(db.DateTime(timezone=True), nullable=True)


# --- User profile (one per identity) ---
class Profile(UserMixin, db.Model):
    __tablename__ = 'profiles'

    # Shares its primary key with the identity it belongs to
    id = db.Column(db.Integer, db.ForeignKey('auth_identity.id'), primary_key=True)
    email = db.Column(db.String(120), nullable=False, index=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')  # 'active' or 'inactive'
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    full_name = db.Column(db.String(200), nullable=True)
    zillow_integration_status = db.Column(db.String(20), nullable=False, default='inactive')
    invited_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    invited_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    organization = db.relationship('Organization')
    identity = db.relationship('AuthIdentity')

    # Flask-Login refuses sessions for inactive users
    @property
    def is_active(self):
        return self.status == 'active'

    @property
    def display_name(self):
        if self.full_name:
            return self.full_name
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'organization_id': self.organization_id,
            'status': self.status,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'zillow_integration_status': self.zillow_integration_status,
            'created_at': format_utc_iso(self.created_at),
        }


# --- Roles ---
class Role(db.Model):
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # 'admin' or 'user'
    description = db.Column(db.String(255), nullable=True)
    permissions = db.Column(db.JSON, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'permissions': self.permissions or [],
        }


class UserRole(db.Model):
    __tablename__ = 'user_roles'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    role = db.relationship('Role')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'organization_id', name='uq_user_role_org'),
    )


# --- Invitations ---
class Invitation(db.Model):
    __tablename__ = 'invitations'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    email = db.Column(db.String(120), nullable=False, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False)
    invited_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    # No unique constraint on (organization_id, email, status); duplicates are prevented by a pre-check
    token = db.Column(db.String(64), unique=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    properties_to_assign = db.Column(db.JSON, nullable=True)  # list of property ids
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    role = db.relationship('Role')
    organization = db.relationship('Organization')
    inviter = db.relationship('Profile', foreign_keys=[invited_by])

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role.name if self.role else None,
            'roleId': self.role_id,
            'status': self.status,
            'createdAt': format_utc_iso(self.created_at),
            'expiresAt': format_utc_iso(self.expires_at),
            'acceptedAt': format_utc_iso(self.accepted_at),
            'invitedBy': self.inviter.display_name if self.inviter else None,
            'propertiesToAssign': self.properties_to_assign or [],
        }


# --- Properties ---
class Property(db.Model):
    __tablename__ = 'properties'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(50), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    property_type = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='active')
    bedrooms = db.Column(db.Integer, nullable=True)
    bathrooms = db.Column(db.Float, nullable=True)
    price = db.Column(db.Integer, nullable=True)
    square_feet = db.Column(db.Integer, nullable=True)
    listing_id = db.Column(db.String(100), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'address': self.address,
            'unit': self.unit,
            'city': self.city,
            'state': self.state,
            'zip_code': self.zip_code,
            'property_type': self.property_type,
            'status': self.status,
            'bedrooms': self.bedrooms,
            'bathrooms': self.bathrooms,
            'price': self.price,
            'square_feet': self.square_feet,
        }


class PropertyAssignment(db.Model):
    __tablename__ = 'property_assignments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    assigned_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    property = db.relationship('Property')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'property_id', name='uq_property_assignment'),
    )


# --- Audit trail ---
class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)


# --- Leads ---
class Contact(db.Model):
    __tablename__ = 'contacts'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)  # owning agent
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=True)

    name = db.Column(db.String(200), nullable=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    # Not unique: every inbound lead creates its own row
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(20), nullable=True, index=True)  # digits only

    lead_source = db.Column(db.String(50), nullable=True)
    lead_status = db.Column(db.String(50), nullable=True)
    listing_id = db.Column(db.String(100), nullable=True)
    message = db.Column(db.Text, nullable=True)

    # Qualification answers captured with the lead
    move_in_date = db.Column(db.Date, nullable=True)
    income = db.Column(db.Integer, nullable=True)
    credit_score_min = db.Column(db.Integer, nullable=True)
    credit_score_max = db.Column(db.Integer, nullable=True)
    has_pets = db.Column(db.Boolean, nullable=True)
    pet_details = db.Column(db.JSON, nullable=True)
    lease_length = db.Column(db.String(50), nullable=True)
    num_occupants = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    property = db.relationship('Property')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'lead_source': self.lead_source,
            'lead_status': self.lead_status,
            'property_id': self.property_id,
            'user_id': self.user_id,
            'organization_id': self.organization_id,
            'move_in_date': self.move_in_date.isoformat() if self.move_in_date else None,
            'income': self.income,
            'credit_score_min': self.credit_score_min,
            'credit_score_max': self.credit_score_max,
            'has_pets': self.has_pets,
            'pet_details': self.pet_details,
            'created_at': format_utc_iso(self.created_at),
        }


class QualificationStatus(db.Model):
    __tablename__ = 'qualification_status'

    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), unique=True, nullable=False)
    qualification_status = db.Column(db.String(20), nullable=False, default='not_started')
    qualification_progress = db.Column(db.Integer, nullable=False, default=0)
    automation_enabled = db.Column(db.Boolean, nullable=False, default=True)
    qualification_date = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_dict(self):
        return {
            'contact_id': self.contact_id,
            'qualification_status': self.qualification_status,
            'qualification_progress': self.qualification_progress,
            'automation_enabled': self.automation_enabled,
        }


# --- Messaging ---
class Conversation(db.Model):
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), nullable=False)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    phone_number = db.Column(db.String(20), nullable=True, index=True)
    conversation_status = db.Column(db.String(20), nullable=False, default='not_started')
    automation_pause_reason = db.Column(db.String(100), nullable=True)

    # Identifiers on the chat platform, set once the conversation is bootstrapped
    botpress_conversation_id = db.Column(db.String(100), nullable=True)
    botpress_user_id = db.Column(db.String(100), nullable=True)

    last_outreach_attempt = db.Column(db.DateTime(timezone=True), nullable=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    conversation_metadata = db.Column('metadata', db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    contact = db.relationship('Contact', backref=db.backref('conversations', lazy=True))
    messages = db.relationship('Message', backref='conversation', lazy=True, cascade="all, delete-orphan")

    @property
    def is_bootstrapped(self):
        return bool(self.botpress_conversation_id)

    def to_dict(self):
        return {
            'id': self.id,
            'contact_id': self.contact_id,
            'phone_number': self.phone_number,
            'conversation_status': self.conversation_status,
            'automation_pause_reason': self.automation_pause_reason,
            'botpress_conversation_id': self.botpress_conversation_id,
            'botpress_user_id': self.botpress_user_id,
            'last_outreach_attempt': format_utc_iso(self.last_outreach_attempt),
            'ended_at': format_utc_iso(self.ended_at),
        }


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey('conversations.id'), nullable=False)
    direction = db.Column(db.String(10), nullable=False)  # 'inbound' or 'outbound'
    source = db.Column(db.String(20), nullable=True)  # 'twilio' or 'botpress'
    message_type = db.Column(db.String(20), nullable=False, default='text')
    content = db.Column(db.Text, nullable=True)
    twilio_message_sid = db.Column(db.String(100), nullable=True, index=True)
    botpress_message_id = db.Column(db.String(100), nullable=True)
    delivery_status = db.Column(db.String(20), nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    message_metadata = db.Column('metadata', db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'direction': self.direction,
            'source': self.source,
            'content': self.content,
            'twilio_message_sid': self.twilio_message_sid,
            'delivery_status': self.delivery_status,
            'is_read': self.is_read,
            'created_at': format_utc_iso(self.created_at),
        }
