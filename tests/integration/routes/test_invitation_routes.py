"""
Integration tests for the invitation lifecycle over HTTP
"""

from datetime import timedelta
from extensions import db
from crm_database import Invitation, Profile, PropertyAssignment, UserRole, AuditLog
from utils.datetime_utils import utc_now
from conftest import create_profile, login


def make_invitation(organization, role, inviter, email='new@acme.com', status='pending',
                    expires_in=timedelta(days=7), properties=None, token=None):
    invitation = Invitation(
        organization_id=organization.id,
        email=email,
        role_id=role.id,
        invited_by=inviter.id,
        token=token or f"token-{email}",
        status=status,
        expires_at=utc_now() + expires_in,
        properties_to_assign=properties or []
    )
    db.session.add(invitation)
    db.session.commit()
    return invitation


class TestCreateInvitations:

    def test_requires_admin(self, agent_client, roles):
        response = agent_client.post('/api/settings/invitations',
                                     json={'emails': ['x@acme.com'], 'roleId': roles['user'].id})
        assert response.status_code == 403

    def test_requires_login(self, client):
        assert client.post('/api/settings/invitations', json={}).status_code == 401

    def test_creates_invitations_and_sends_email(self, admin_client, roles, property_row, email_service):
        response = admin_client.post('/api/settings/invitations', json={
            'emails': ['New@Acme.com', 'second@acme.com'],
            'roleId': roles['user'].id,
            'propertyIds': [property_row.id],
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        assert len(body['invitations']) == 2
        assert body['emailStats'] == {'sent': 2, 'failed': 0}
        assert {i['email'] for i in body['invitations']} == {'new@acme.com', 'second@acme.com'}

        stored = Invitation.query.filter_by(email='new@acme.com').one()
        assert stored.status == 'pending'
        assert stored.properties_to_assign == [property_row.id]
        assert len(stored.token) == 64
        assert email_service.send_invitation_email.call_count == 2
        assert AuditLog.query.filter_by(action='invitation_sent').count() == 2

    def test_invalid_email_rejects_batch(self, admin_client, roles):
        response = admin_client.post('/api/settings/invitations', json={
            'emails': ['ok@acme.com', 'broken'],
            'roleId': roles['user'].id,
        })

        assert response.status_code == 400
        assert response.get_json()['invalidEmails'] == ['broken']
        assert Invitation.query.count() == 0

    def test_existing_member_conflict(self, admin_client, roles, agent_user):
        response = admin_client.post('/api/settings/invitations', json={
            'emails': [agent_user.email], 'roleId': roles['user'].id,
        })

        assert response.status_code == 409
        assert response.get_json()['code'] == 'ACTIVE_USERS_EXIST'

    def test_duplicate_pending_invitation(self, admin_client, organization, roles, admin_user):
        make_invitation(organization, roles['user'], admin_user)

        response = admin_client.post('/api/settings/invitations', json={
            'emails': ['new@acme.com'], 'roleId': roles['user'].id,
        })

        assert response.status_code == 409
        assert response.get_json()['existingInvitations'] == ['new@acme.com']

    def test_property_from_other_organization(self, admin_client, roles, other_organization):
        from crm_database import Property
        foreign = Property(organization_id=other_organization.id, address='1 Elsewhere', zip_code='10001')
        db.session.add(foreign)
        db.session.commit()

        response = admin_client.post('/api/settings/invitations', json={
            'emails': ['new@acme.com'], 'roleId': roles['user'].id, 'propertyIds': [foreign.id],
        })

        assert response.status_code == 400
        assert response.get_json()['invalidPropertyIds'] == [foreign.id]

    def test_deactivated_user_needs_confirmation(self, admin_client, organization, roles):
        gone = create_profile(organization, 'gone@acme.com', role=roles['user'], status='inactive')

        first = admin_client.post('/api/settings/invitations', json={
            'emails': ['gone@acme.com'], 'roleId': roles['user'].id,
        })
        assert first.status_code == 200
        assert first.get_json()['requiresConfirmation'] is True
        assert db.session.get(Profile, gone.id).status == 'inactive'

        second = admin_client.post('/api/settings/invitations', json={
            'emails': ['gone@acme.com'], 'roleId': roles['user'].id, 'reactivateDeactivated': True,
        })
        assert second.status_code == 201
        assert second.get_json()['reactivatedUsers'][0]['email'] == 'gone@acme.com'
        assert second.get_json()['invitations'] == []
        assert db.session.get(Profile, gone.id).status == 'active'


class TestListResendCancel:

    def test_list_expires_stale_invitations(self, admin_client, organization, roles, admin_user):
        make_invitation(organization, roles['user'], admin_user, email='live@acme.com')
        stale = make_invitation(organization, roles['user'], admin_user, email='stale@acme.com',
                                expires_in=timedelta(hours=-1))

        response = admin_client.get('/api/settings/invitations')

        assert response.status_code == 200
        assert [i['email'] for i in response.get_json()['invitations']] == ['live@acme.com']
        assert db.session.get(Invitation, stale.id).status == 'expired'

    def test_list_is_scoped_to_organization(self, admin_client, other_organization, roles):
        outsider = create_profile(other_organization, 'boss@other.com', role=roles['admin'])
        make_invitation(other_organization, roles['user'], outsider, email='theirs@other.com')

        response = admin_client.get('/api/settings/invitations')

        assert response.get_json()['invitations'] == []

    def test_resend_expired_invitation(self, admin_client, organization, roles, admin_user, email_service):
        invitation = make_invitation(organization, roles['user'], admin_user, status='expired',
                                     expires_in=timedelta(days=-2))

        response = admin_client.post(f'/api/settings/invitations/{invitation.id}/resend')

        assert response.status_code == 200
        assert response.get_json()['emailSent'] is True
        refreshed = db.session.get(Invitation, invitation.id)
        assert refreshed.status == 'pending'
        assert refreshed.token != 'token-new@acme.com'
        email_service.send_invitation_email.assert_called_once()

        old_link = admin_client.get('/api/invitations/validate/token-new@acme.com')
        assert old_link.status_code == 404

    def test_resend_refused_when_newer_invitation_is_pending(self, admin_client, organization, roles,
                                                            admin_user):
        expired = make_invitation(organization, roles['user'], admin_user, email='dup@acme.com',
                                  status='expired', expires_in=timedelta(days=-2), token='old-token')
        created = admin_client.post('/api/settings/invitations', json={
            'emails': ['dup@acme.com'], 'roleId': roles['user'].id,
        })
        assert created.status_code == 201

        response = admin_client.post(f'/api/settings/invitations/{expired.id}/resend')

        assert response.status_code == 409
        assert response.get_json()['code'] == 'PENDING_INVITATION_EXISTS'
        assert Invitation.query.filter_by(email='dup@acme.com', status='pending').count() == 1
        unchanged = db.session.get(Invitation, expired.id)
        assert unchanged.status == 'expired'
        assert unchanged.token == 'old-token'

    def test_cancel_and_cancel_again(self, admin_client, organization, roles, admin_user):
        invitation = make_invitation(organization, roles['user'], admin_user)

        assert admin_client.delete(f'/api/settings/invitations/{invitation.id}').status_code == 200
        assert db.session.get(Invitation, invitation.id).status == 'cancelled'

        again = admin_client.delete(f'/api/settings/invitations/{invitation.id}')
        assert again.status_code == 400
        assert again.get_json()['code'] == 'INVALID_STATUS'

    def test_cancel_other_organization_invitation(self, admin_client, other_organization, roles):
        outsider = create_profile(other_organization, 'boss@other.com', role=roles['admin'])
        theirs = make_invitation(other_organization, roles['user'], outsider, email='theirs@other.com')

        assert admin_client.delete(f'/api/settings/invitations/{theirs.id}').status_code == 404


class TestValidateAndAccept:

    def test_validate(self, client, organization, roles, admin_user):
        invitation = make_invitation(organization, roles['user'], admin_user, token='t' * 64)

        response = client.get(f'/api/invitations/validate/{invitation.token}')

        assert response.status_code == 200
        details = response.get_json()['invitation']
        assert details['email'] == 'new@acme.com'
        assert details['organizationName'] == 'Acme Rentals'
        assert details['invitedBy'] == 'Ada Admin'
        assert details['isReactivation'] is False

    def test_validate_unknown_token(self, client, app):
        assert client.get('/api/invitations/validate/missing').status_code == 404

    def test_validate_expired_token(self, client, organization, roles, admin_user):
        invitation = make_invitation(organization, roles['user'], admin_user, expires_in=timedelta(seconds=-1))

        response = client.get(f'/api/invitations/validate/{invitation.token}')

        assert response.status_code == 410
        assert response.get_json()['code'] == 'INVITATION_EXPIRED'
        assert db.session.get(Invitation, invitation.id).status == 'expired'

    def test_accept_creates_account(self, app, organization, roles, admin_user, property_row):
        invitation = make_invitation(organization, roles['user'], admin_user, properties=[property_row.id])
        visitor = app.test_client()

        response = visitor.post(f'/api/invitations/accept/{invitation.token}', json={
            'firstName': 'Nina', 'lastName': 'New', 'password': 'long-enough-password',
        })

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['signedIn'] is True
        assert body['isReactivation'] is False

        profile = Profile.query.filter_by(email='new@acme.com').one()
        assert profile.organization_id == organization.id
        assert profile.full_name == 'Nina New'
        assert UserRole.query.filter_by(user_id=profile.id).one().role_id == roles['user'].id
        assert PropertyAssignment.query.filter_by(user_id=profile.id).count() == 1
        assert db.session.get(Invitation, invitation.id).status == 'accepted'

        # The token is single use
        again = app.test_client().post(f'/api/invitations/accept/{invitation.token}', json={
            'firstName': 'Nina', 'lastName': 'New', 'password': 'long-enough-password',
        })
        assert again.status_code == 410

    def test_accept_then_login(self, app, organization, roles, admin_user):
        invitation = make_invitation(organization, roles['user'], admin_user)
        app.test_client().post(f'/api/invitations/accept/{invitation.token}', json={
            'firstName': 'Nina', 'lastName': 'New', 'password': 'long-enough-password',
        })

        response = login(app.test_client(), 'new@acme.com', password='long-enough-password')
        assert response.status_code == 200

    def test_accept_short_password(self, client, organization, roles, admin_user):
        invitation = make_invitation(organization, roles['user'], admin_user)

        response = client.post(f'/api/invitations/accept/{invitation.token}', json={
            'firstName': 'Nina', 'lastName': 'New', 'password': 'short',
        })

        assert response.status_code == 400
        assert response.get_json()['code'] == 'PASSWORD_TOO_SHORT'
        assert db.session.get(Invitation, invitation.id).status == 'pending'

    def test_accept_reactivates_profile(self, app, organization, roles, admin_user, property_row):
        gone = create_profile(organization, 'gone@acme.com', role=roles['user'], status='inactive')
        db.session.add(PropertyAssignment(user_id=gone.id, property_id=property_row.id,
                                          organization_id=organization.id))
        db.session.commit()
        invitation = make_invitation(organization, roles['admin'], admin_user, email='gone@acme.com')

        response = app.test_client().post(f'/api/invitations/accept/{invitation.token}', json={
            'firstName': 'Back', 'lastName': 'Again', 'password': 'brand-new-password',
        })

        assert response.status_code == 200
        assert response.get_json()['isReactivation'] is True
        profile = db.session.get(Profile, gone.id)
        assert profile.status == 'active'
        assert UserRole.query.filter_by(user_id=gone.id).one().role_id == roles['admin'].id
        assert PropertyAssignment.query.filter_by(user_id=gone.id).count() == 0
        assert login(app.test_client(), 'gone@acme.com', password='brand-new-password').status_code == 200
