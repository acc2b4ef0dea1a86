"""
LeadIntakeService - Turns an inbound listing lead into a contact

The owning agent is found through the listing contact email. Contact,
property and qualification rows are the primary outcome; the integration
flag, property assignment and conversation bootstrap are side effects whose
failure is logged and reported but never fails the intake.
"""

from typing import Optional, Dict, Any, List
from repositories.profile_repository import ProfileRepository
from repositories.contact_repository import ContactRepository
from repositories.qualification_status_repository import QualificationStatusRepository
from services.common.result import Result, SideEffect, run_side_effect
from services.enums import QualificationState
from utils.phone_utils import normalize_phone_number
from utils.validation import (
    missing_fields, normalize_email, split_full_name, safe_json_loads, parse_int, optional_text
)
from utils.datetime_utils import parse_iso_date
from logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ['phone', 'email', 'name', 'listingContactEmail', 'listingStreet', 'listingPostalCode']


class LeadIntakeService:
    """Lead webhook processing"""

    def __init__(self,
                 profile_repository: Optional[ProfileRepository] = None,
                 contact_repository: Optional[ContactRepository] = None,
                 qualification_status_repository: Optional[QualificationStatusRepository] = None,
                 property_service=None,
                 bootstrap_service=None,
                 outreach_timeout: float = 10):
        """
        Args:
            profile_repository: Used to route the lead to its agent
            contact_repository: Contact writes
            qualification_status_repository: Automation flag per contact
            property_service: Property matching
            bootstrap_service: ConversationBootstrapService
            outreach_timeout: Timeout in seconds for the chat-platform calls made during intake
        """
        self.profile_repository = profile_repository
        self.contact_repository = contact_repository
        self.qualification_status_repository = qualification_status_repository
        self.property_service = property_service
        self.bootstrap_service = bootstrap_service
        self.outreach_timeout = outreach_timeout

        if not all([profile_repository, contact_repository, qualification_status_repository,
                    property_service, bootstrap_service]):
            raise ValueError("LeadIntakeService dependencies must be provided via dependency injection")

    def process_lead(self, payload: Dict[str, Any]) -> Result[Dict[str, Any]]:
        """
        Ingest one lead payload.

        Returns:
            Result with the created contact, the resolved property and the
            owning profile; side effects describe the best-effort steps
        """
        if not isinstance(payload, dict):
            return Result.failure("Invalid JSON payload", code="VALIDATION_ERROR")

        missing = missing_fields(payload, REQUIRED_FIELDS)
        if missing:
            return Result.failure(
                f"Missing required fields: {', '.join(missing)}",
                code="VALIDATION_ERROR",
                metadata={'missingFields': missing}
            )

        listing_email = normalize_email(payload.get('listingContactEmail'))
        profile = self.profile_repository.find_by_email(listing_email)
        if not profile:
            logger.warning("No profile for listing contact email", listing_contact_email=listing_email)
            return Result.failure("No user found for listing contact email", code="PROFILE_NOT_FOUND")

        side_effects: List[SideEffect] = []
        if profile.zillow_integration_status != 'active':
            side_effects.append(run_side_effect('integration_status', self._activate_integration, profile))

        try:
            property_result = self.property_service.resolve_property(
                organization_id=profile.organization_id,
                address=optional_text(payload.get('listingStreet')),
                zip_code=optional_text(payload.get('listingPostalCode')),
                unit=optional_text(payload.get('listingUnit')),
                city=optional_text(payload.get('listingCity')),
                state=optional_text(payload.get('listingState')),
                created_by=profile.id,
                listing_id=payload.get('listingId')
            )
            if property_result.is_failure:
                self.contact_repository.rollback()
                return property_result
            prop = property_result.data['property']
            match = property_result.data['match']

            contact = self.contact_repository.create(**self._contact_fields(payload, profile, prop.id))

            self.qualification_status_repository.upsert(
                contact.id,
                qualification_status=QualificationState.NOT_STARTED.value,
                qualification_progress=0,
                automation_enabled=True
            )
            self.contact_repository.commit()
        except Exception as e:
            self.contact_repository.rollback()
            logger.error("Failed to create contact from lead", error=str(e))
            return Result.failure("Failed to create contact", code="DATABASE_ERROR")

        if match == 'created':
            side_effects.append(run_side_effect(
                'property_assignment', self.property_service.assign_to_user,
                profile.id, prop.id, profile.organization_id, profile.id
            ))

        if self.qualification_status_repository.is_automation_enabled(contact.id):
            side_effects.append(run_side_effect(
                'conversation_bootstrap', self.bootstrap_service.initiate_outreach,
                contact.id, timeout=self.outreach_timeout
            ))

        logger.info("Lead ingested", contact_id=contact.id, property_id=prop.id,
                    property_match=match, profile_id=profile.id)

        return Result.success({
            'contact': contact.to_dict(),
            'property': dict(prop.to_dict(), match=match),
            'profile': {
                'id': profile.id,
                'email': profile.email,
                'zillow_integration_status': profile.zillow_integration_status,
            },
        }, side_effects=side_effects)

    def _activate_integration(self, profile) -> None:
        try:
            self.profile_repository.update(profile, zillow_integration_status='active')
            self.profile_repository.commit()
        except Exception:
            self.profile_repository.rollback()
            raise

    @staticmethod
    def _contact_fields(payload: Dict[str, Any], profile, property_id: int) -> Dict[str, Any]:
        name = ' '.join(str(payload.get('name')).split())
        first_name, last_name = split_full_name(name)

        credit_score = safe_json_loads(payload.get('creditScore'), 'creditScore')
        credit_min = credit_max = None
        if isinstance(credit_score, dict):
            credit_min = parse_int(credit_score.get('min'))
            credit_max = parse_int(credit_score.get('max'))

        pets = safe_json_loads(payload.get('pets'), 'pets')
        has_pets = None
        if isinstance(pets, list):
            has_pets = len(pets) > 0
        elif isinstance(pets, dict):
            has_pets = bool(pets.get('hasPets', bool(pets)))

        return {
            'organization_id': profile.organization_id,
            'user_id': profile.id,
            'property_id': property_id,
            'name': name,
            'first_name': first_name,
            'last_name': last_name,
            'email': normalize_email(payload.get('email')),
            'phone': normalize_phone_number(payload.get('phone')),
            'lead_source': payload.get('leadSource') or 'zillow',
            'lead_status': payload.get('leadStatus') or 'new lead',
            'listing_id': payload.get('listingId'),
            'message': payload.get('message'),
            'move_in_date': parse_iso_date(payload.get('moveInDate')),
            'income': parse_int(payload.get('income')),
            'credit_score_min': credit_min,
            'credit_score_max': credit_max,
            'has_pets': has_pets,
            'pet_details': pets,
            'lease_length': str(payload['leaseLength']) if payload.get('leaseLength') is not None else None,
            'num_occupants': parse_int(payload.get('numOccupants')),
        }
