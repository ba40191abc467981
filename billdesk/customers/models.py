from dataclasses import dataclass
from typing import Optional

from billdesk.utils.numbers import to_decimal


@dataclass(frozen=True)
class Customer:
    """Customer attached to a bill. `loyalty_points` is the balance at attach time."""
    id:             str
    name:           str
    phone:          str = ''
    loyalty_points: int = 0

    @property
    def has_phone(self) -> bool:
        return bool(self.phone.strip())

    def to_dict(self) -> dict:
        return {
            'id':            self.id,
            'name':          self.name,
            'phone':         self.phone,
            'loyaltyPoints': self.loyalty_points,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['Customer']:
        if not data:
            return None
        points = to_decimal(data.get('loyaltyPoints', data.get('points')))
        return cls(
            id=str(data.get('id') or data.get('_id') or ''),
            name=str(data.get('name') or data.get('fullName') or ''),
            phone=str(data.get('phone') or ''),
            loyalty_points=max(0, int(points)),
        )

    def __repr__(self):
        return f"<Customer {self.name} ({self.phone}) Pts:{self.loyalty_points}>"
