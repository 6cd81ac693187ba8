from dataclasses import dataclass

from clinic_scheduler.models.user import CLINIC_ROLES, ROLE_PATIENT, ROLE_SUPER_ADMIN


@dataclass(frozen=True)
class Actor:
    """The party performing a scheduling operation."""

    user_id: int | None
    role: str
    organization_id: int | None = None
    client_id: int | None = None

    @property
    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT

    @property
    def is_clinic(self) -> bool:
        return self.role in CLINIC_ROLES

    def can_manage(self, organization_id: int) -> bool:
        if self.role == ROLE_SUPER_ADMIN:
            return True
        return self.is_clinic and self.organization_id == organization_id
