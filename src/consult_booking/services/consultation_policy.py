"""Consultation catalog and the pricing/location policy applied to new appointments"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from consult_booking.config import config
from consult_booking.database.models import (
    Appointment,
    AppointmentDetails,
    ConsultationType,
    Slot,
)


@dataclass(frozen=True)
class ConsultationOption:
    label: str
    price: Decimal
    in_person: bool = False


CONSULTATION_CATALOG: Dict[ConsultationType, ConsultationOption] = {
    ConsultationType.VIRTUAL: ConsultationOption("Virtual Consultation", config.price_virtual),
    ConsultationType.TELEPHONIC: ConsultationOption(
        "Telephonic Consultation", config.price_telephonic
    ),
    ConsultationType.FACE_TO_FACE: ConsultationOption(
        "Face-to-Face Consultation", config.price_face_to_face, in_person=True
    ),
}


def resolve_price(consultation_type: ConsultationType, requested: Optional[Decimal] = None) -> Decimal:
    if requested is not None:
        if requested < 0:
            raise ValueError("price cannot be negative")
        return requested
    return CONSULTATION_CATALOG[consultation_type].price


def resolve_location(consultation_type: ConsultationType) -> Optional[str]:
    """Single practice location, only for in-person consultations"""
    if CONSULTATION_CATALOG[consultation_type].in_person:
        return config.practice_location
    return None


def build_appointment(slot: Slot, details: AppointmentDetails, now: datetime) -> Appointment:
    return Appointment(
        customer_name=details.customer_name.strip(),
        customer_email=details.customer_email,
        customer_phone=details.customer_phone.strip(),
        consultation_type=details.consultation_type,
        appointment_date=slot.slot_date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        price=resolve_price(details.consultation_type, details.price),
        payment_status=details.payment_status,
        location=resolve_location(details.consultation_type),
        notes=details.notes or None,
        created_at=now,
    )
