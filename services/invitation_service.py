"""
InvitationService - Organization invitation lifecycle

Creates, lists (with lazy expiry), validates, accepts, resends and cancels
invitations. Writes to the invitation, profile, role and property tables are
the primary outcome and are committed before any audit row or email is
attempted; those run as side effects and are reported on the Result.
"""

import secrets
from typing import Optional, List, Dict, Any, Iterable

from repositories.invitation_repository import InvitationRepository
from repositories.profile_repository import ProfileRepository
from repositories.role_repository import RoleRepository, UserRoleRepository
from repositories.property_repository import PropertyRepository
from repositories.property_assignment_repository import PropertyAssignmentRepository
from services.common.result import Result, SideEffect, run_side_effect
from services.enums import InvitationStatus, ProfileStatus, AuditAction
from utils.datetime_utils import utc_now, utc_days_from_now, is_past, format_utc_iso
from utils.validation import partition_emails
from logging_config import get_logger

logger = get_logger(__name__)


class InvitationService:
    """Service for organization invitations using Result pattern"""

    def __init__(self,
                 invitation_repository: Optional[InvitationRepository] = None,
                 profile_repository: Optional[ProfileRepository] = None,
                 role_repository: Optional[RoleRepository] = None,
                 user_role_repository: Optional[UserRoleRepository] = None,
                 property_repository: Optional[PropertyRepository] = None,
                 property_assignment_repository: Optional[PropertyAssignmentRepository] = None,
                 identity_service=None,
                 audit_service=None,
                 email_service=None,
                 base_url: str = 'http://localhost:5000',
                 expiry_days: int = 7,
                 min_password_length: int = 8):
        """
        Initialize with injected collaborators.

        Args:
            invitation_repository: Invitation data access
            profile_repository: Profile data access
            role_repository: Role lookups
            user_role_repository: Role assignment data access
            property_repository: Property ownership checks
            property_assignment_repository: Property access rows
            identity_service: Credential creation and sign-in
            audit_service: Audit trail writer
            email_service: Invitation email sender
            base_url: Public URL used to build accept links
            expiry_days: Days before a pending invitation expires
            min_password_length: Minimum accepted password length
        """
        self.invitation_repository = invitation_repository
        self.profile_repository = profile_repository
        self.role_repository = role_repository
        self.user_role_repository = user_role_repository
        self.property_repository = property_repository
        self.property_assignment_repository = property_assignment_repository
        self.identity_service = identity_service
        self.audit_service = audit_service
        self.email_service = email_service
        self.base_url = base_url.rstrip('/')
        self.expiry_days = expiry_days
        self.min_password_length = min_password_length

        required = [invitation_repository, profile_repository, role_repository, user_role_repository,
                    property_repository, property_assignment_repository, identity_service, audit_service]
        if not all(required):
            raise ValueError("InvitationService dependencies must be provided via dependency injection")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_invitations(self,
                           inviter,
                           emails: Any,
                           role_id: Any,
                           property_ids: Optional[Iterable[Any]] = None,
                           reactivate_deactivated: bool = False) -> Result[Dict[str, Any]]:
        """
        Invite a batch of email addresses into the inviter's organization.

        Either every address is invited (or reactivated) or none is; email
        delivery is best effort and reported in email_stats.

        Returns:
            Result with invitations, reactivated users and email stats, or a
            confirmation request when deactivated accounts would be reactivated
        """
        organization_id = inviter.organization_id

        if not isinstance(emails, list) or not emails:
            return Result.failure("At least one email address is required", code="VALIDATION_ERROR")

        valid_emails, invalid_emails = partition_emails(emails)
        if invalid_emails:
            return Result.failure(
                f"Invalid email address(es): {', '.join(str(e) for e in invalid_emails)}",
                code="INVALID_EMAILS",
                metadata={'invalidEmails': invalid_emails}
            )

        if role_id in (None, ''):
            return Result.failure("Role is required", code="VALIDATION_ERROR")

        role = self._get_role(role_id)
        if not role:
            return Result.failure("Invalid role", code="INVALID_ROLE")

        property_result = self._validate_property_ids(property_ids, organization_id)
        if property_result.is_failure:
            return property_result
        property_id_list = property_result.data

        existing_profiles = self.profile_repository.find_by_emails_in_organization(valid_emails, organization_id)
        active_profiles = [p for p in existing_profiles if p.status == ProfileStatus.ACTIVE.value]
        inactive_profiles = [p for p in existing_profiles if p.status != ProfileStatus.ACTIVE.value]

        if active_profiles:
            conflicting = [p.email for p in active_profiles]
            return Result.failure(
                f"The following users already exist in your organization: {', '.join(conflicting)}",
                code="ACTIVE_USERS_EXIST",
                metadata={'existingEmails': conflicting}
            )

        if inactive_profiles and not reactivate_deactivated:
            return Result.success({
                'requires_confirmation': True,
                'deactivated_users': [self._profile_summary(p) for p in inactive_profiles],
                'message': (
                    f"{len(inactive_profiles)} user(s) were previously deactivated. "
                    "Confirm to reactivate their accounts."
                ),
            })

        reactivated_emails = {p.email.lower() for p in inactive_profiles}
        remaining_emails = [e for e in valid_emails if e not in reactivated_emails]

        pending = self.invitation_repository.find_pending_for_emails(organization_id, remaining_emails)
        stale = [inv for inv in pending if is_past(inv.expires_at)]
        live = [inv for inv in pending if not is_past(inv.expires_at)]
        if live:
            already_invited = sorted({inv.email for inv in live})
            return Result.failure(
                f"Pending invitations already exist for: {', '.join(already_invited)}",
                code="PENDING_INVITATION_EXISTS",
                metadata={'existingInvitations': already_invited}
            )

        try:
            for profile in inactive_profiles:
                self.profile_repository.update(profile, status=ProfileStatus.ACTIVE.value)

            for invitation in stale:
                self.invitation_repository.update(invitation, status=InvitationStatus.EXPIRED.value)

            created = []
            for email in remaining_emails:
                created.append(self.invitation_repository.create(
                    organization_id=organization_id,
                    email=email,
                    role_id=role.id,
                    invited_by=inviter.id,
                    token=self.generate_token(),
                    status=InvitationStatus.PENDING.value,
                    expires_at=utc_days_from_now(self.expiry_days),
                    properties_to_assign=property_id_list
                ))

            self.invitation_repository.commit()
        except Exception as e:
            self.invitation_repository.rollback()
            logger.error("Failed to create invitations", error=str(e), organization_id=organization_id)
            return Result.failure("Failed to create invitations", code="DATABASE_ERROR")

        side_effects: List[SideEffect] = []
        for profile in inactive_profiles:
            side_effects.append(run_side_effect(
                'audit', self.audit_service.record, AuditAction.USER_REACTIVATED,
                organization_id, inviter.id, 'profile', profile.id, {'email': profile.email}
            ))
        side_effects.extend(self._audit_expired(stale, inviter.id))

        sent = failed = 0
        for invitation in created:
            side_effects.append(run_side_effect(
                'audit', self.audit_service.record, AuditAction.INVITATION_SENT,
                organization_id, inviter.id, 'invitation', invitation.id,
                {'email': invitation.email, 'role_id': role.id, 'properties_count': len(property_id_list)}
            ))
            email_effect = run_side_effect('email', self._send_invitation_email, invitation, inviter, role.name)
            side_effects.append(email_effect)
            if email_effect.ok:
                sent += 1
            else:
                failed += 1

        logger.info("Invitations created", organization_id=organization_id,
                    created=len(created), reactivated=len(inactive_profiles),
                    emails_sent=sent, emails_failed=failed)

        return Result.success({
            'requires_confirmation': False,
            'invitations': [invitation.to_dict() for invitation in created],
            'reactivated_users': [self._profile_summary(p) for p in inactive_profiles],
            'email_stats': {'sent': sent, 'failed': failed},
            'message': self._creation_message(len(created), len(inactive_profiles), sent, failed),
        }, side_effects=side_effects)

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    def list_pending_invitations(self, organization_id: int, actor_id: Optional[int] = None) -> Result[List[Dict[str, Any]]]:
        """
        Pending invitations of an organization.

        Invitations found past their expiry are marked expired on the way and
        left out of the result.
        """
        try:
            pending = self.invitation_repository.find_pending_for_organization(organization_id)
            stale = [inv for inv in pending if is_past(inv.expires_at)]
            for invitation in stale:
                self.invitation_repository.update(invitation, status=InvitationStatus.EXPIRED.value)
            if stale:
                self.invitation_repository.commit()
        except Exception as e:
            self.invitation_repository.rollback()
            logger.error("Failed to list invitations", error=str(e), organization_id=organization_id)
            return Result.failure("Failed to fetch invitations", code="DATABASE_ERROR")

        side_effects = self._audit_expired(stale, actor_id)
        live = [inv.to_dict() for inv in pending if inv not in stale]
        return Result.success(live, metadata={'expired_count': len(stale)}, side_effects=side_effects)

    # ------------------------------------------------------------------
    # Validate / accept
    # ------------------------------------------------------------------

    def validate_invitation(self, token: str) -> Result[Dict[str, Any]]:
        """Check a token before showing the signup form."""
        invitation = self.invitation_repository.find_by_token(token or '')
        check = self._check_usable(invitation, detailed=True)
        if check is not None:
            return check

        profile = self.profile_repository.find_by_email_in_organization(invitation.email, invitation.organization_id)
        if profile and profile.status == ProfileStatus.ACTIVE.value:
            return Result.failure("An account with this email already exists", code="ACCOUNT_EXISTS")

        inviter = invitation.inviter
        return Result.success({
            'id': invitation.id,
            'email': invitation.email,
            'role': invitation.role.name if invitation.role else 'user',
            'organizationName': invitation.organization.name if invitation.organization else 'Organization',
            'invitedBy': inviter.display_name if inviter else 'Admin',
            'invitedByEmail': inviter.email if inviter else '',
            'expiresAt': format_utc_iso(invitation.expires_at),
            'propertiesCount': len(invitation.properties_to_assign or []),
            'isReactivation': profile is not None,
        })

    def accept_invitation(self, token: str, first_name: Optional[str], last_name: Optional[str],
                          password: Optional[str]) -> Result[Dict[str, Any]]:
        """
        Turn an invitation into an active account.

        Three branches on the (email, organization) profile: reactivate an
        inactive one, create a new account, or refuse when an active one
        exists. Signing in afterwards is a convenience; its failure still
        reports success and points the caller at the login page.
        """
        first_name = (first_name or '').strip()
        last_name = (last_name or '').strip()
        if not first_name or not last_name or not password:
            return Result.failure("First name, last name, and password are required", code="VALIDATION_ERROR")
        if len(password) < self.min_password_length:
            return Result.failure(
                f"Password must be at least {self.min_password_length} characters long",
                code="PASSWORD_TOO_SHORT"
            )

        invitation = self.invitation_repository.find_by_token(token or '')
        check = self._check_usable(invitation, detailed=False)
        if check is not None:
            return check

        profile = self.profile_repository.find_by_email_in_organization(invitation.email, invitation.organization_id)
        if profile and profile.status == ProfileStatus.ACTIVE.value:
            return Result.failure(
                "An account with this email already exists. Please log in.",
                code="ACCOUNT_EXISTS"
            )

        is_reactivation = profile is not None
        if is_reactivation:
            outcome = self._reactivate_account(invitation, profile, first_name, last_name, password)
        else:
            outcome = self._create_account(invitation, first_name, last_name, password)
        if outcome.is_failure:
            return outcome
        profile = outcome.data

        property_ids = list(invitation.properties_to_assign or [])
        side_effects = [run_side_effect(
            'audit', self.audit_service.record, AuditAction.INVITATION_ACCEPTED,
            invitation.organization_id, profile.id, 'invitation', invitation.id,
            {
                'email': invitation.email,
                'role_id': invitation.role_id,
                'is_reactivation': is_reactivation,
                'properties_count': len(property_ids),
            }
        )]

        sign_in = run_side_effect('sign_in', self.identity_service.sign_in, profile)
        side_effects.append(sign_in)

        if sign_in.ok:
            data = {
                'message': 'Account reactivated successfully!' if is_reactivation else 'Account created successfully!',
                'redirectTo': '/dashboard',
                'signedIn': True,
            }
        else:
            data = {
                'message': 'Account created successfully! Please sign in with your credentials.',
                'redirectTo': '/login',
                'signedIn': False,
            }
        data.update({'userId': profile.id, 'isReactivation': is_reactivation})

        logger.info("Invitation accepted", invitation_id=invitation.id,
                    user_id=profile.id, is_reactivation=is_reactivation)
        return Result.success(data, side_effects=side_effects)

    def _reactivate_account(self, invitation, profile, first_name: str, last_name: str, password: str) -> Result:
        try:
            identity = self.identity_service.get_identity(profile.id)
            if identity is None:
                return Result.failure("Account credentials are missing", code="DATABASE_ERROR")
            self.identity_service.set_password(identity, password)

            self.profile_repository.update(
                profile,
                first_name=first_name,
                last_name=last_name,
                full_name=f"{first_name} {last_name}",
                status=ProfileStatus.ACTIVE.value,
                invited_by=invitation.invited_by,
                invited_at=invitation.created_at
            )
            self.user_role_repository.upsert_role(profile.id, invitation.organization_id, invitation.role_id)

            # Replace, not merge, the previous property access
            self.property_assignment_repository.remove_for_user(profile.id)
            self.property_assignment_repository.assign_many(
                profile.id, invitation.properties_to_assign or [],
                invitation.organization_id, invitation.invited_by
            )

            self._mark_accepted(invitation)
            self.invitation_repository.commit()
            return Result.success(profile)
        except Exception as e:
            self.invitation_repository.rollback()
            logger.error("Failed to reactivate account", error=str(e), invitation_id=invitation.id)
            return Result.failure("Failed to reactivate account", code="DATABASE_ERROR")

    def _create_account(self, invitation, first_name: str, last_name: str, password: str) -> Result:
        identity_created = True
        identity_result = self.identity_service.create_identity(invitation.email, password)

        if identity_result.is_failure and identity_result.error_code == 'IDENTITY_EXISTS':
            # Left behind by an earlier attempt that never got a profile
            identity_created = False
            identity = self.identity_service.find_identity(invitation.email)
            if identity is None:
                return Result.failure("Failed to create account", code="DATABASE_ERROR")
            if self.profile_repository.get_by_id(identity.id) is not None:
                return Result.failure(
                    "This email is already registered with another organization",
                    code="ACCOUNT_IN_OTHER_ORGANIZATION"
                )
            try:
                self.identity_service.set_password(identity, password)
            except Exception as e:
                self.invitation_repository.rollback()
                logger.error("Failed to reset existing identity", error=str(e))
                return Result.failure("Failed to create account", code="DATABASE_ERROR")
        elif identity_result.is_failure:
            return identity_result
        else:
            identity = identity_result.data

        try:
            profile = self.profile_repository.create(
                id=identity.id,
                email=invitation.email,
                organization_id=invitation.organization_id,
                status=ProfileStatus.ACTIVE.value,
                first_name=first_name,
                last_name=last_name,
                full_name=f"{first_name} {last_name}",
                invited_by=invitation.invited_by,
                invited_at=invitation.created_at
            )
            self.user_role_repository.create(
                user_id=profile.id,
                organization_id=invitation.organization_id,
                role_id=invitation.role_id
            )
            self.property_assignment_repository.assign_many(
                profile.id, invitation.properties_to_assign or [],
                invitation.organization_id, invitation.invited_by
            )
            self._mark_accepted(invitation)
            self.invitation_repository.commit()
            return Result.success(profile)
        except Exception as e:
            self.invitation_repository.rollback()
            logger.error("Failed to create profile", error=str(e), invitation_id=invitation.id)
            if identity_created:
                try:
                    self.identity_service.delete_identity(identity.id)
                except Exception as cleanup_error:
                    logger.error("Failed to remove orphaned identity",
                                 identity_id=identity.id, error=str(cleanup_error))
            return Result.failure("Failed to create user profile", code="PROFILE_CREATION_FAILED")

    # ------------------------------------------------------------------
    # Resend / cancel
    # ------------------------------------------------------------------

    def resend_invitation(self, invitation_id: int, actor) -> Result[Dict[str, Any]]:
        """
        Renew a pending or expired invitation with a fresh token and expiry and
        send the email again. Refused while another live invitation is pending
        for the same address.
        """
        invitation = self.invitation_repository.find_in_organization(invitation_id, actor.organization_id)
        if not invitation:
            return Result.failure("Invitation not found", code="INVITATION_NOT_FOUND")
        if invitation.status not in (InvitationStatus.PENDING.value, InvitationStatus.EXPIRED.value):
            return Result.failure(
                f"Cannot resend an invitation that is {invitation.status}",
                code="INVALID_STATUS"
            )

        pending = self.invitation_repository.find_pending_for_emails(
            invitation.organization_id, [invitation.email]
        )
        if any(inv.id != invitation.id and not is_past(inv.expires_at) for inv in pending):
            return Result.failure(
                f"A pending invitation already exists for {invitation.email}",
                code="PENDING_INVITATION_EXISTS",
                metadata={'existingInvitations': [invitation.email]}
            )

        try:
            self.invitation_repository.update(
                invitation,
                status=InvitationStatus.PENDING.value,
                token=self.generate_token(),
                expires_at=utc_days_from_now(self.expiry_days)
            )
            self.invitation_repository.commit()
        except Exception as e:
            self.invitation_repository.rollback()
            logger.error("Failed to resend invitation", error=str(e), invitation_id=invitation_id)
            return Result.failure("Failed to resend invitation", code="DATABASE_ERROR")

        role_name = invitation.role.name if invitation.role else 'user'
        email_effect = run_side_effect('email', self._send_invitation_email, invitation, actor, role_name)
        side_effects = [
            run_side_effect(
                'audit', self.audit_service.record, AuditAction.INVITATION_RESENT,
                invitation.organization_id, actor.id, 'invitation', invitation.id,
                {'email': invitation.email}
            ),
            email_effect,
        ]

        message = 'Invitation resent successfully' if email_effect.ok else \
            'Invitation renewed but the email failed to send'
        return Result.success({
            'invitation': invitation.to_dict(),
            'emailSent': email_effect.ok,
            'message': message,
        }, side_effects=side_effects)

    def cancel_invitation(self, invitation_id: int, actor) -> Result[Dict[str, Any]]:
        """Withdraw a pending invitation; the row is kept with status cancelled."""
        invitation = self.invitation_repository.find_in_organization(invitation_id, actor.organization_id)
        if not invitation:
            return Result.failure("Invitation not found", code="INVITATION_NOT_FOUND")
        if invitation.status != InvitationStatus.PENDING.value:
            return Result.failure(
                f"Cannot cancel an invitation that is {invitation.status}",
                code="INVALID_STATUS"
            )

        try:
            self.invitation_repository.update(invitation, status=InvitationStatus.CANCELLED.value)
            self.invitation_repository.commit()
        except Exception as e:
            self.invitation_repository.rollback()
            logger.error("Failed to cancel invitation", error=str(e), invitation_id=invitation_id)
            return Result.failure("Failed to cancel invitation", code="DATABASE_ERROR")

        side_effects = [run_side_effect(
            'audit', self.audit_service.record, AuditAction.INVITATION_CANCELLED,
            invitation.organization_id, actor.id, 'invitation', invitation.id,
            {'email': invitation.email}
        )]
        return Result.success({'message': 'Invitation cancelled'}, side_effects=side_effects)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def generate_token() -> str:
        """32 random bytes, hex encoded."""
        return secrets.token_hex(32)

    def invite_url(self, token: str) -> str:
        return f"{self.base_url}/invite/{token}"

    def _check_usable(self, invitation, detailed: bool) -> Optional[Result]:
        """
        Shared token checks. Returns a failure Result or None when usable.

        An invitation found past its expiry is marked expired here.
        """
        if invitation is None:
            return Result.failure("Invalid invitation", code="INVITATION_NOT_FOUND")

        if invitation.status == InvitationStatus.PENDING.value and is_past(invitation.expires_at):
            try:
                self.invitation_repository.update(invitation, status=InvitationStatus.EXPIRED.value)
                self.invitation_repository.commit()
            except Exception as e:
                self.invitation_repository.rollback()
                logger.error("Failed to mark invitation expired", error=str(e), invitation_id=invitation.id)
            return Result.failure("This invitation has expired", code="INVITATION_EXPIRED")

        if invitation.status == InvitationStatus.EXPIRED.value:
            return Result.failure("This invitation has expired", code="INVITATION_EXPIRED")

        if invitation.status != InvitationStatus.PENDING.value:
            if not detailed:
                message = "This invitation is no longer valid"
            elif invitation.status == InvitationStatus.ACCEPTED.value:
                message = "This invitation has already been accepted"
            else:
                message = "This invitation has been cancelled"
            return Result.failure(message, code="INVITATION_INVALID")

        return None

    def _mark_accepted(self, invitation) -> None:
        self.invitation_repository.update(
            invitation,
            status=InvitationStatus.ACCEPTED.value,
            accepted_at=utc_now()
        )

    def _audit_expired(self, invitations, actor_id: Optional[int]) -> List[SideEffect]:
        return [
            run_side_effect(
                'audit', self.audit_service.record, AuditAction.INVITATION_EXPIRED,
                invitation.organization_id, actor_id, 'invitation', invitation.id,
                {'email': invitation.email}
            )
            for invitation in invitations
        ]

    def _get_role(self, role_id: Any):
        try:
            return self.role_repository.get_by_id(int(role_id))
        except (TypeError, ValueError):
            return None

    def _validate_property_ids(self, property_ids: Optional[Iterable[Any]], organization_id: int) -> Result[List[int]]:
        if not property_ids:
            return Result.success([])
        try:
            ids = list(dict.fromkeys(int(pid) for pid in property_ids))
        except (TypeError, ValueError):
            return Result.failure("Property ids must be integers", code="INVALID_PROPERTIES")

        owned = set(self.property_repository.find_ids_in_organization(ids, organization_id))
        unknown = [pid for pid in ids if pid not in owned]
        if unknown:
            return Result.failure(
                "One or more properties do not belong to your organization",
                code="INVALID_PROPERTIES",
                metadata={'invalidPropertyIds': unknown}
            )
        return Result.success(ids)

    def _send_invitation_email(self, invitation, inviter, role_name: str) -> Result[bool]:
        if not self.email_service:
            return Result.failure("Email service not configured", code="EMAIL_NOT_CONFIGURED")

        organization_name = invitation.organization.name if invitation.organization else 'your organization'
        ok, message = self.email_service.send_invitation_email(
            email=invitation.email,
            invite_url=self.invite_url(invitation.token),
            role=role_name,
            organization_name=organization_name,
            inviter_name=inviter.display_name,
            expires_days=self.expiry_days
        )
        if not ok:
            return Result.failure(message, code="EMAIL_FAILED")
        return Result.success(True)

    @staticmethod
    def _profile_summary(profile) -> Dict[str, Any]:
        return {'id': profile.id, 'email': profile.email, 'name': profile.display_name}

    @staticmethod
    def _creation_message(created: int, reactivated: int, sent: int, failed: int) -> str:
        message = f"{created} invitation(s) created."
        if reactivated:
            message += f" {reactivated} user(s) reactivated."
        message += f" {sent} email(s) sent."
        if failed:
            message += f" {failed} email(s) failed to send."
        return message
