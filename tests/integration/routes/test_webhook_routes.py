"""
Integration tests for the inbound webhooks: listing leads, outreach, bot
replies and Twilio SMS
"""

from extensions import db
from crm_database import Contact, Conversation, Message, Profile, Property, QualificationStatus
from services.common.result import Result
from conftest import create_contact, create_conversation


def lead_payload(**overrides):
    payload = {
        'name': 'Jane  Renter',
        'email': 'Jane@Renter.com',
        'phone': '(555) 123-4567',
        'listingContactEmail': 'agent@acme.com',
        'listingStreet': '12 Main St',
        'listingPostalCode': '07030',
        'listingCity': 'Hoboken',
        'listingState': 'NJ',
        'moveInDate': '2026-12-01',
        'creditScore': '{"min": 650, "max": 700}',
        'pets': '[{"type": "cat"}]',
        'income': '$85,000',
    }
    payload.update(overrides)
    return payload


def sms_form(**overrides):
    form = {'MessageSid': 'SM-in-1', 'From': '+15551234567', 'To': '+15550000000', 'Body': 'Is it available?'}
    form.update(overrides)
    return form


class TestZillowContact:

    def test_creates_contact_and_bootstraps_conversation(self, client, agent_user, property_row, botpress_client):
        response = client.post('/api/zillowcontact', json=lead_payload())

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['property']['match'] == 'exact'
        assert body['data']['property']['id'] == property_row.id

        contact = Contact.query.one()
        assert contact.user_id == agent_user.id
        assert contact.name == 'Jane Renter'
        assert contact.email == 'jane@renter.com'
        assert contact.phone == '5551234567'
        assert contact.credit_score_min == 650
        assert contact.has_pets is True
        assert contact.income == 85000

        conversation = Conversation.query.filter_by(contact_id=contact.id).one()
        assert conversation.conversation_status == 'active'
        assert conversation.botpress_conversation_id == 'bp-conv-1'
        botpress_client.create_message.assert_called_once()

        effects = {e['name']: e for e in body['sideEffects']}
        assert effects['conversation_bootstrap']['ok'] is True
        assert db.session.get(Profile, agent_user.id).zillow_integration_status == 'active'

    def test_unknown_listing_creates_property(self, client, agent_user):
        response = client.post('/api/zillowcontact', json=lead_payload(listingStreet='5 New Ave'))

        body = response.get_json()
        assert response.status_code == 200
        assert body['data']['property']['match'] == 'created'
        effects = {e['name']: e for e in body['sideEffects']}
        assert effects['property_assignment']['ok'] is True

    def test_partial_address_attaches_to_existing_property(self, client, organization, agent_user):
        existing = Property(organization_id=organization.id, address='12 Main St Apt 4', zip_code='07030',
                            status='active')
        db.session.add(existing)
        db.session.commit()

        response = client.post('/api/zillowcontact', json=lead_payload(listingStreet='12 Main St'))

        body = response.get_json()
        assert response.status_code == 200
        assert body['data']['property']['match'] == 'fuzzy'
        assert body['data']['property']['id'] == existing.id
        assert Contact.query.one().property_id == existing.id
        assert Property.query.count() == 1
        assert 'property_assignment' not in {e['name'] for e in body['sideEffects']}

    def test_repeated_lead_creates_second_contact(self, client, agent_user, property_row):
        first = client.post('/api/zillowcontact', json=lead_payload())
        second = client.post('/api/zillowcontact', json=lead_payload())

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.get_json()['data']['contact']['id'] != second.get_json()['data']['contact']['id']
        assert Contact.query.count() == 2
        assert Property.query.count() == 1

    def test_numeric_listing_fields(self, client, agent_user):
        response = client.post('/api/zillowcontact', json=lead_payload(listingStreet=12, listingUnit=4))

        assert response.status_code == 200
        created = Property.query.one()
        assert created.address == '12'
        assert created.unit == '4'

    def test_reports_integration_status_of_agent(self, client, agent_user, property_row):
        response = client.post('/api/zillowcontact', json=lead_payload())

        assert response.get_json()['data']['profile']['zillow_integration_status'] == 'active'

    def test_missing_fields(self, client):
        response = client.post('/api/zillowcontact', json={'name': 'Jane'})

        assert response.status_code == 400
        assert set(response.get_json()['missingFields']) == {
            'phone', 'email', 'listingContactEmail', 'listingStreet', 'listingPostalCode'
        }

    def test_unknown_agent(self, client, agent_user):
        response = client.post('/api/zillowcontact', json=lead_payload(listingContactEmail='nobody@acme.com'))

        assert response.status_code == 404
        assert Contact.query.count() == 0

    def test_chat_platform_failure_keeps_contact(self, client, agent_user, property_row, botpress_client):
        from services.botpress_client import BotpressAPIError
        botpress_client.get_or_create_user.side_effect = BotpressAPIError('down', status_code=503)

        response = client.post('/api/zillowcontact', json=lead_payload())

        assert response.status_code == 200
        effects = {e['name']: e for e in response.get_json()['sideEffects']}
        assert effects['conversation_bootstrap']['ok'] is False
        contact = Contact.query.one()
        assert QualificationStatus.query.filter_by(contact_id=contact.id).one().automation_enabled is False

    def test_invalid_json(self, client):
        response = client.post('/api/zillowcontact', data='nope', content_type='application/json')
        assert response.status_code == 400


class TestInitiateOutreach:

    def test_bootstraps_once(self, client, organization, agent_user, botpress_client):
        contact = create_contact(organization, agent_user)

        first = client.post('/api/botpress/initiate-outreach', json={'contactId': contact.id})
        second = client.post('/api/botpress/initiate-outreach', json={'contactId': contact.id})

        assert first.status_code == 200
        assert first.get_json()['alreadyExists'] is False
        assert first.get_json()['botpressConversationId'] == 'bp-conv-1'
        assert second.get_json()['alreadyExists'] is True
        assert second.get_json()['conversationId'] == first.get_json()['conversationId']
        botpress_client.create_message.assert_called_once()

    def test_contact_id_required(self, client):
        assert client.post('/api/botpress/initiate-outreach', json={}).status_code == 400

    def test_unknown_contact(self, client, app):
        assert client.post('/api/botpress/initiate-outreach', json={'contactId': 404}).status_code == 404

    def test_automation_disabled(self, client, organization, agent_user, botpress_client):
        contact = create_contact(organization, agent_user, automation_enabled=False)

        response = client.post('/api/botpress/initiate-outreach', json={'contactId': contact.id})

        assert response.status_code == 400
        assert response.get_json()['code'] == 'AUTOMATION_DISABLED'
        botpress_client.get_or_create_user.assert_not_called()


class TestBotpressWebhook:

    def test_reply_is_sent_by_sms(self, client, organization, agent_user, twilio_service):
        conversation = create_conversation(create_contact(organization, agent_user))

        response = client.post('/api/botpress/webhook', json={
            'conversationId': conversation.id, 'text': 'Tours run daily.', 'metadata': {'messageId': 'bp-1'},
        })

        assert response.status_code == 200
        twilio_service.send_sms.assert_called_once_with('5551234567', 'Tours run daily.')
        message = Message.query.filter_by(direction='outbound').one()
        assert message.delivery_status == 'sent'
        assert message.twilio_message_sid == 'SM123'
        assert message.botpress_message_id == 'bp-1'

    def test_ended_conversation(self, client, organization, agent_user, twilio_service):
        conversation = create_conversation(create_contact(organization, agent_user), status='ended')

        response = client.post('/api/botpress/webhook', json={'conversationId': conversation.id, 'text': 'Hi'})

        assert response.status_code == 409
        twilio_service.send_sms.assert_not_called()

    def test_sms_failure_marks_message_failed(self, client, organization, agent_user, twilio_service):
        conversation = create_conversation(create_contact(organization, agent_user))
        twilio_service.send_sms.return_value = Result.failure('Carrier rejected', code='SMS_SEND_FAILED')

        response = client.post('/api/botpress/webhook', json={'conversationId': conversation.id, 'text': 'Hi'})

        assert response.status_code == 502
        assert Message.query.one().delivery_status == 'failed'

    def test_missing_text(self, client, app):
        assert client.post('/api/botpress/webhook', json={'conversationId': 1}).status_code == 400


class TestTwilioWebhook:

    def test_active_conversation_is_relayed(self, client, organization, agent_user, botpress_client):
        conversation = create_conversation(create_contact(organization, agent_user))

        response = client.post('/api/twilio/webhook', data=sms_form())

        assert response.status_code == 200
        assert response.mimetype == 'application/xml'
        assert b'<Response></Response>' in response.data
        message = Message.query.one()
        assert message.conversation_id == conversation.id
        assert message.direction == 'inbound'
        assert message.twilio_message_sid == 'SM-in-1'
        botpress_client.relay_inbound_message.assert_called_once_with(
            'bp-user-1', 'bp-conv-1', 'Is it available?', message_id='SM-in-1'
        )

    def test_paused_conversation_is_stored_only(self, client, organization, agent_user, botpress_client):
        create_conversation(create_contact(organization, agent_user), status='paused')

        response = client.post('/api/twilio/webhook', data=sms_form())

        assert response.status_code == 200
        assert Message.query.count() == 1
        botpress_client.relay_inbound_message.assert_not_called()

    def test_not_bootstrapped_conversation(self, client, organization, agent_user, botpress_client):
        create_conversation(create_contact(organization, agent_user), status='not_started', bootstrapped=False)

        response = client.post('/api/twilio/webhook', data=sms_form())

        assert response.status_code == 409
        assert Message.query.count() == 1
        botpress_client.relay_inbound_message.assert_not_called()

    def test_unknown_sender(self, client, app):
        response = client.post('/api/twilio/webhook', data=sms_form(From='+15559999999'))
        assert response.status_code == 404

    def test_bad_signature(self, client, organization, agent_user, twilio_service):
        create_conversation(create_contact(organization, agent_user))
        twilio_service.validate_signature.return_value = False

        response = client.post('/api/twilio/webhook', data=sms_form(),
                               headers={'X-Twilio-Signature': 'forged'})

        assert response.status_code == 401
        assert Message.query.count() == 0

    def test_signature_checked_against_public_url(self, client, organization, agent_user, twilio_service):
        create_conversation(create_contact(organization, agent_user))

        client.post('/api/twilio/webhook', data=sms_form(), headers={
            'X-Twilio-Signature': 'sig',
            'X-Forwarded-Proto': 'https',
            'X-Forwarded-Host': 'crm.example.com',
        })

        url, params, signature = twilio_service.validate_signature.call_args[0]
        assert url == 'https://crm.example.com/api/twilio/webhook'
        assert params['MessageSid'] == 'SM-in-1'
        assert signature == 'sig'
