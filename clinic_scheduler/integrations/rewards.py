"""Loyalty points for paid appointments."""

import logging
import math
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.reward import Reward

logger = logging.getLogger(__name__)

REFERENCE_APPOINTMENT = 'appointment'

DEFAULT_TIERS = (
    (5000, Decimal('2.5')),
    (2500, Decimal('2.0')),
    (1000, Decimal('1.5')),
    (0, Decimal('1.0')),
)


def client_balance(db: Session, client_id: int) -> int:
    total = db.query(func.coalesce(func.sum(Reward.points), 0)).filter(Reward.client_id == client_id).scalar()
    return int(total or 0)


def multiplier_for(balance: int, tiers=DEFAULT_TIERS) -> Decimal:
    for threshold, multiplier in sorted(tiers, key=lambda tier: tier[0], reverse=True):
        if balance >= threshold:
            return multiplier
    return Decimal('1.0')


def calculate_points(amount: Decimal, balance: int, tiers=DEFAULT_TIERS) -> int:
    return math.floor(Decimal(amount) * multiplier_for(balance, tiers))


class RewardLedger:
    def __init__(self, tiers=DEFAULT_TIERS):
        self.tiers = tiers

    def already_awarded(self, db: Session, appointment_id: int) -> bool:
        return db.query(Reward.id).filter(
            Reward.reference_type == REFERENCE_APPOINTMENT,
            Reward.reference_id == appointment_id,
        ).first() is not None

    def award_for_appointment(self, db: Session, appointment: Appointment, amount: Decimal) -> Reward | None:
        """Award points once per appointment; repeated calls are no-ops."""
        if self.already_awarded(db, appointment.id):
            return None

        points = calculate_points(amount, client_balance(db, appointment.client_id), self.tiers)
        if points <= 0:
            return None

        reward = Reward(
            organization_id=appointment.organization_id,
            client_id=appointment.client_id,
            points=points,
            reason=f'Service payment: {appointment.notes or "Appointment"}',
            reference_id=appointment.id,
            reference_type=REFERENCE_APPOINTMENT,
        )
        try:
            with db.begin_nested():
                db.add(reward)
        except IntegrityError:
            # Another request won the race for this appointment.
            logger.info('Reward for appointment %s already recorded', appointment.id)
            return None

        logger.info('Awarded %d point(s) to client %s for appointment %s', points, appointment.client_id, appointment.id)
        return reward
