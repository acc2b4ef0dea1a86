"""
Tests for ConversationService - status transitions and the automation toggle
"""

import pytest
from unittest.mock import Mock
from services.conversation_service import ConversationService


class TestConversationService:

    @pytest.fixture
    def conversation(self):
        conversation = Mock(id=7, contact_id=55, conversation_status='active',
                            automation_pause_reason=None, is_bootstrapped=True)
        conversation.to_dict.return_value = {'id': 7}
        return conversation

    @pytest.fixture
    def contact_repository(self):
        repo = Mock()
        repo.get_by_id.return_value = Mock(id=55)
        return repo

    @pytest.fixture
    def conversation_repository(self, conversation):
        repo = Mock()
        repo.find_latest_for_contact.return_value = conversation
        return repo

    @pytest.fixture
    def qualification_status_repository(self):
        return Mock()

    @pytest.fixture
    def service(self, contact_repository, conversation_repository, qualification_status_repository):
        return ConversationService(
            contact_repository=contact_repository,
            conversation_repository=conversation_repository,
            qualification_status_repository=qualification_status_repository
        )

    # --- pause ---

    def test_pause_requires_contact_id(self, service):
        assert service.pause_conversation(None).error_code == 'VALIDATION_ERROR'

    def test_pause_unknown_contact(self, service, contact_repository):
        contact_repository.get_by_id.return_value = None
        assert service.pause_conversation(55).error_code == 'CONTACT_NOT_FOUND'

    def test_pause_without_conversation(self, service, conversation_repository):
        conversation_repository.find_latest_for_contact.return_value = None
        assert service.pause_conversation(55).error_code == 'CONVERSATION_NOT_FOUND'

    def test_pause_active(self, service, conversation, conversation_repository, qualification_status_repository):
        result = service.pause_conversation('55', reason='human_takeover', actor_id=3)

        assert result.is_success
        assert result.data['message'] == 'Conversation paused'
        conversation_repository.update.assert_called_once_with(
            conversation, conversation_status='paused', automation_pause_reason='human_takeover'
        )
        qualification_status_repository.upsert.assert_called_once_with(55, automation_enabled=False, updated_by=3)
        conversation_repository.commit.assert_called_once()

    def test_pause_default_reason(self, service, conversation, conversation_repository):
        service.pause_conversation(55)
        assert conversation_repository.update.call_args.kwargs['automation_pause_reason'] == 'user_paused'

    def test_pause_already_paused_is_a_no_op(self, service, conversation, conversation_repository):
        conversation.conversation_status = 'paused'

        result = service.pause_conversation(55)

        assert result.is_success
        assert result.data['message'] == 'Conversation is already paused'
        conversation_repository.update.assert_not_called()

    @pytest.mark.parametrize('status', ['ended', 'not_started'])
    def test_pause_illegal_transition(self, service, conversation, conversation_repository, status):
        conversation.conversation_status = status

        result = service.pause_conversation(55)

        assert result.error_code == 'INVALID_TRANSITION'
        conversation_repository.update.assert_not_called()

    def test_pause_database_error(self, service, conversation_repository):
        conversation_repository.commit.side_effect = Exception('locked')

        result = service.pause_conversation(55)

        assert result.error_code == 'DATABASE_ERROR'
        conversation_repository.rollback.assert_called_once()

    # --- resume ---

    def test_resume_paused(self, service, conversation, conversation_repository, qualification_status_repository):
        conversation.conversation_status = 'paused'
        conversation.automation_pause_reason = 'user_paused'

        result = service.resume_conversation(55)

        assert result.is_success
        conversation_repository.update.assert_called_once_with(
            conversation, conversation_status='active', automation_pause_reason=None
        )
        qualification_status_repository.upsert.assert_called_once_with(55, automation_enabled=True, updated_by=None)

    @pytest.mark.parametrize('status', ['active', 'ended', 'not_started'])
    def test_resume_requires_paused(self, service, conversation, status):
        conversation.conversation_status = status
        assert service.resume_conversation(55).error_code == 'INVALID_STATUS'

    # --- end ---

    @pytest.mark.parametrize('status', ['not_started', 'active', 'paused'])
    def test_end_from_open_states(self, service, conversation, conversation_repository, status):
        conversation.conversation_status = status

        result = service.end_conversation(55)

        assert result.is_success
        update_kwargs = conversation_repository.update.call_args.kwargs
        assert update_kwargs['conversation_status'] == 'ended'
        assert update_kwargs['ended_at'] is not None

    def test_end_twice_is_rejected(self, service, conversation):
        conversation.conversation_status = 'ended'
        assert service.end_conversation(55).error_code == 'INVALID_TRANSITION'

    # --- status and automation ---

    def test_status_without_conversation(self, service, conversation_repository):
        conversation_repository.find_latest_for_contact.return_value = None
        assert service.get_conversation_status(55).data == {'status': 'not_started'}

    def test_status_with_conversation(self, service):
        result = service.get_conversation_status(55)
        assert result.data == {
            'status': 'active',
            'conversation_id': 7,
            'automation_pause_reason': None,
            'has_remote': True,
        }

    def test_status_unknown_contact(self, service, contact_repository):
        contact_repository.get_by_id.return_value = None
        assert service.get_conversation_status(55).error_code == 'CONTACT_NOT_FOUND'

    def test_get_automation_defaults_to_enabled(self, service, qualification_status_repository):
        qualification_status_repository.find_by_contact.return_value = None
        assert service.get_automation(55).data == {
            'automation_enabled': True,
            'qualification_status': 'not_started',
        }

    def test_get_automation_reads_flag(self, service, qualification_status_repository):
        qualification_status_repository.find_by_contact.return_value = Mock(
            automation_enabled=False, qualification_status='in_progress'
        )
        assert service.get_automation(55).data == {
            'automation_enabled': False,
            'qualification_status': 'in_progress',
        }

    def test_set_automation_requires_boolean(self, service):
        assert service.set_automation(55, 'false').error_code == 'VALIDATION_ERROR'

    def test_disable_automation_pauses_active_conversation(self, service, conversation, conversation_repository,
                                                           qualification_status_repository):
        result = service.set_automation(55, False, actor_id=3)

        assert result.data == {'automation_enabled': False, 'paused_conversation_id': 7}
        qualification_status_repository.upsert.assert_called_once_with(55, automation_enabled=False, updated_by=3)
        conversation_repository.update.assert_called_once_with(
            conversation, conversation_status='paused', automation_pause_reason='automation_disabled'
        )
        qualification_status_repository.commit.assert_called_once()

    def test_enable_automation_does_not_resume(self, service, conversation, conversation_repository):
        conversation.conversation_status = 'paused'

        result = service.set_automation(55, True)

        assert result.data == {'automation_enabled': True, 'paused_conversation_id': None}
        conversation_repository.update.assert_not_called()

    def test_disable_automation_leaves_paused_conversation(self, service, conversation, conversation_repository):
        conversation.conversation_status = 'paused'

        result = service.set_automation(55, False)

        assert result.data['paused_conversation_id'] is None
        conversation_repository.update.assert_not_called()
