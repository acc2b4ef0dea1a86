"""
Tests for ConversationBootstrapService
"""

import pytest
from unittest.mock import Mock
from services.conversation_bootstrap_service import ConversationBootstrapService
from services.botpress_client import BotpressClient, BotpressAPIError


class TestConversationBootstrapService:

    @pytest.fixture
    def contact(self):
        contact = Mock(id=55, organization_id=1, user_id=3, phone='9082448429',
                       first_name='Jane', last_name='Renter', email='jane@renter.com')
        contact.name = 'Jane Renter'
        contact.property.address = '12 Main St'
        return contact

    @pytest.fixture
    def conversation(self):
        return Mock(id=7, conversation_status='not_started',
                    botpress_conversation_id=None, botpress_user_id=None)

    @pytest.fixture
    def contact_repository(self, contact):
        repo = Mock()
        repo.get_by_id.return_value = contact
        return repo

    @pytest.fixture
    def conversation_repository(self, conversation):
        repo = Mock()
        repo.find_latest_for_contact.return_value = conversation
        return repo

    @pytest.fixture
    def qualification_status_repository(self):
        repo = Mock()
        repo.find_by_contact.return_value = Mock(automation_enabled=True)
        return repo

    @pytest.fixture
    def botpress_client(self):
        client = Mock(spec=BotpressClient)
        client.get_or_create_user.return_value = 'user-1'
        client.create_conversation.return_value = 'conv-1'
        return client

    @pytest.fixture
    def service(self, contact_repository, conversation_repository, qualification_status_repository,
                botpress_client):
        return ConversationBootstrapService(
            contact_repository=contact_repository,
            conversation_repository=conversation_repository,
            qualification_status_repository=qualification_status_repository,
            botpress_client=botpress_client,
            assistant_name='Alex'
        )

    def test_invalid_contact_id(self, service):
        assert service.initiate_outreach('abc').error_code == 'VALIDATION_ERROR'

    def test_unknown_contact(self, service, contact_repository):
        contact_repository.get_by_id.return_value = None
        assert service.initiate_outreach(55).error_code == 'CONTACT_NOT_FOUND'

    def test_automation_disabled(self, service, qualification_status_repository, botpress_client):
        qualification_status_repository.find_by_contact.return_value = Mock(automation_enabled=False)

        result = service.initiate_outreach(55)

        assert result.error_code == 'AUTOMATION_DISABLED'
        botpress_client.get_or_create_user.assert_not_called()

    def test_handshake_stores_remote_ids_and_activates(self, service, botpress_client, conversation_repository,
                                                       conversation):
        result = service.initiate_outreach('55', timeout=3)

        assert result.is_success
        assert result.data == {
            'already_exists': False,
            'conversation_id': 7,
            'botpress_conversation_id': 'conv-1',
            'botpress_user_id': 'user-1',
        }
        botpress_client.get_or_create_user.assert_called_once_with(tags={'contactId': '55'}, timeout=3)
        botpress_client.create_conversation.assert_called_once_with(
            channel='webhook', tags={'id': '7'}, timeout=3
        )
        botpress_client.add_participant.assert_called_once_with('conv-1', 'user-1', timeout=3)
        state_args = botpress_client.set_state.call_args.args
        assert state_args[:3] == ('conversation', 'conv-1', 'contactContext')
        assert state_args[3]['contactId'] == 55

        greeting = botpress_client.create_message.call_args.args[2]
        assert greeting.startswith('Hi, is this Jane? I\'m Alex')
        assert '12 Main St' in greeting

        updates = conversation_repository.update.call_args.kwargs
        assert updates['conversation_status'] == 'active'
        assert updates['botpress_conversation_id'] == 'conv-1'
        assert updates['last_outreach_attempt'] is not None
        conversation_repository.commit.assert_called_once()

    def test_creates_local_conversation_when_missing(self, service, conversation_repository, conversation):
        conversation_repository.find_latest_for_contact.return_value = None
        conversation_repository.create.return_value = conversation

        result = service.initiate_outreach(55)

        assert result.is_success
        create_kwargs = conversation_repository.create.call_args.kwargs
        assert create_kwargs['contact_id'] == 55
        assert create_kwargs['phone_number'] == '9082448429'
        assert create_kwargs['conversation_status'] == 'not_started'

    def test_already_bootstrapped_is_idempotent(self, service, conversation, botpress_client):
        conversation.botpress_conversation_id = 'conv-old'
        conversation.botpress_user_id = 'user-old'
        conversation.conversation_status = 'active'

        result = service.initiate_outreach(55)

        assert result.data['already_exists'] is True
        assert result.data['botpress_conversation_id'] == 'conv-old'
        botpress_client.create_message.assert_not_called()

    def test_paused_conversation_keeps_its_status(self, service, conversation, conversation_repository):
        conversation.conversation_status = 'paused'

        result = service.initiate_outreach(55)

        assert result.is_success
        assert 'conversation_status' not in conversation_repository.update.call_args.kwargs

    def test_ended_conversation_is_not_bootstrapped(self, service, conversation, botpress_client):
        conversation.conversation_status = 'ended'

        result = service.initiate_outreach(55)

        assert result.error_code == 'CONVERSATION_ENDED'
        botpress_client.get_or_create_user.assert_not_called()

    def test_platform_failure_disables_automation(self, service, botpress_client, qualification_status_repository,
                                                  conversation_repository):
        botpress_client.add_participant.side_effect = BotpressAPIError('Botpress returned 500', status_code=500)

        result = service.initiate_outreach(55)

        assert result.error_code == 'CHAT_PLATFORM_ERROR'
        qualification_status_repository.upsert.assert_called_once_with(55, automation_enabled=False)
        qualification_status_repository.commit.assert_called_once()
        conversation_repository.update.assert_not_called()

    def test_greeting_without_property(self, service, contact):
        contact.property = None
        contact.first_name = None
        assert 'Hi, is this Jane Renter?' in service.greeting_for(contact)
        assert 'for the property.' in service.greeting_for(contact)
