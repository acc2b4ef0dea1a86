"""
Integration tests for pause, resume, end and the automation toggle
"""

from extensions import db
from crm_database import Conversation, QualificationStatus
from conftest import create_contact, create_conversation


def automation_flag(contact):
    return QualificationStatus.query.filter_by(contact_id=contact.id).one().automation_enabled


class TestPauseResume:

    def test_pause_then_resume(self, client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        conversation = create_conversation(contact)

        paused = client.post('/api/botpress/pause-conversation',
                             json={'contactId': contact.id, 'reason': 'agent_takeover'})

        assert paused.status_code == 200
        assert paused.get_json()['conversation']['conversation_status'] == 'paused'
        assert db.session.get(Conversation, conversation.id).automation_pause_reason == 'agent_takeover'
        assert automation_flag(contact) is False

        resumed = client.post('/api/botpress/resume-conversation', json={'contactId': contact.id})

        assert resumed.status_code == 200
        refreshed = db.session.get(Conversation, conversation.id)
        assert refreshed.conversation_status == 'active'
        assert refreshed.automation_pause_reason is None
        assert automation_flag(contact) is True

    def test_pause_default_reason_and_repeat(self, client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        conversation = create_conversation(contact)

        client.post('/api/botpress/pause-conversation', json={'contactId': contact.id})
        again = client.post('/api/botpress/pause-conversation', json={'contactId': contact.id})

        assert again.status_code == 200
        assert again.get_json()['message'] == 'Conversation is already paused'
        assert db.session.get(Conversation, conversation.id).automation_pause_reason == 'user_paused'

    def test_pause_ended_conversation(self, client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        create_conversation(contact, status='ended')

        response = client.post('/api/botpress/pause-conversation', json={'contactId': contact.id})

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_TRANSITION'

    def test_resume_requires_paused(self, client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        create_conversation(contact)

        response = client.post('/api/botpress/resume-conversation', json={'contactId': contact.id})

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_STATUS'

    def test_contact_without_conversation(self, client, organization, agent_user):
        contact = create_contact(organization, agent_user)

        response = client.post('/api/botpress/pause-conversation', json={'contactId': contact.id})

        assert response.status_code == 404

    def test_contact_id_required(self, client, app):
        assert client.post('/api/botpress/pause-conversation', json={}).status_code == 400


class TestEndConversation:

    def test_requires_login(self, client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        assert client.post(f'/api/contacts/{contact.id}/conversation/end').status_code == 401

    def test_end_is_final(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        conversation = create_conversation(contact, status='paused')

        response = agent_client.post(f'/api/contacts/{contact.id}/conversation/end')

        assert response.status_code == 200
        ended = db.session.get(Conversation, conversation.id)
        assert ended.conversation_status == 'ended'
        assert ended.ended_at is not None

        again = agent_client.post(f'/api/contacts/{contact.id}/conversation/end')
        assert again.status_code == 400
        assert again.get_json()['code'] == 'INVALID_TRANSITION'


class TestAutomation:

    def test_read_automation(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user)

        response = agent_client.get(f'/api/contacts/{contact.id}/automation')

        assert response.status_code == 200
        assert response.get_json() == {'automation_enabled': True, 'qualification_status': 'not_started'}

    def test_disable_pauses_active_conversation(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        conversation = create_conversation(contact)

        response = agent_client.post(f'/api/contacts/{contact.id}/automation',
                                     json={'automation_enabled': False})

        assert response.status_code == 200
        assert response.get_json()['paused_conversation_id'] == conversation.id
        refreshed = db.session.get(Conversation, conversation.id)
        assert refreshed.conversation_status == 'paused'
        assert refreshed.automation_pause_reason == 'automation_disabled'
        assert automation_flag(contact) is False

    def test_enable_does_not_resume(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user, automation_enabled=False)
        conversation = create_conversation(contact, status='paused')

        response = agent_client.post(f'/api/contacts/{contact.id}/automation',
                                     json={'automation_enabled': True})

        assert response.status_code == 200
        assert automation_flag(contact) is True
        assert db.session.get(Conversation, conversation.id).conversation_status == 'paused'

    def test_flag_must_be_boolean(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user)

        response = agent_client.post(f'/api/contacts/{contact.id}/automation',
                                     json={'automation_enabled': 'yes'})

        assert response.status_code == 400

    def test_unknown_contact(self, agent_client):
        assert agent_client.get('/api/contacts/999/automation').status_code == 404


class TestConversationStatus:

    def test_status_without_conversation(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user)

        response = agent_client.get(f'/api/contacts/{contact.id}/conversation-status')

        assert response.get_json() == {'status': 'not_started'}

    def test_status_of_latest_conversation(self, agent_client, organization, agent_user):
        contact = create_contact(organization, agent_user)
        conversation = create_conversation(contact, status='paused', automation_pause_reason='user_paused')

        body = agent_client.get(f'/api/contacts/{contact.id}/conversation-status').get_json()

        assert body['status'] == 'paused'
        assert body['conversation_id'] == conversation.id
        assert body['automation_pause_reason'] == 'user_paused'
        assert body['has_remote'] is True
