"""Role-tagged identity passed explicitly into every lifecycle operation."""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError


class ActorRole(Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    ADMIN = "admin"
    DELIVERY_ASSOCIATE = "deliveryAssociate"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: str
    role: ActorRole

    @classmethod
    def parse(cls, actor_id: str | None, role: str | None) -> "Actor":
        """Build an actor from raw identifiers, rejecting unknown roles."""
        if not actor_id:
            raise ValidationError({"actor_id": ["Actor id is required"]})
        try:
            parsed_role = ActorRole(role)
        except ValueError:
            raise ValidationError({"actor_role": [f"Unknown actor role: {role}"]}) from None
        if parsed_role == ActorRole.SYSTEM:
            raise ValidationError({"actor_role": ["The system role cannot be claimed by a caller"]})
        return cls(id=actor_id, role=parsed_role)

    @classmethod
    def system(cls) -> "Actor":
        return cls(id="system", role=ActorRole.SYSTEM)
