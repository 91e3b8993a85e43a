"""
Test utilities for booking engine tests.

Small factories that insert rows with sensible defaults and commit them.
"""

from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from core.constants import (
    APPOINTMENT_STATUS_SCHEDULED,
    CONTRACT_STATUS_IN_NETWORK,
    SUPERVISION_LEVEL_SIGN_OFF_ONLY,
)
from models import (
    Appointment, AvailabilityException, AvailabilityTemplate, Payer, Provider,
    ProviderPayerContract, ServiceInstance, SupervisionRelationship,
)

# 2031-03-03 is a Monday, far enough ahead that "today" never interferes
MONDAY = date(2031, 3, 3)
TUESDAY = date(2031, 3, 4)
CONTRACT_START = date(2030, 1, 1)


def create_provider(
    db: Session,
    first_name: str = "Dana",
    last_name: str = "Reyes",
    is_active: bool = True,
    is_bookable: bool = True,
    accepts_new_patients: bool = True,
    languages: Optional[List[str]] = None,
    timezone: Optional[str] = None,
) -> Provider:
    provider = Provider(
        first_name=first_name,
        last_name=last_name,
        is_active=is_active,
        is_bookable=is_bookable,
        accepts_new_patients=accepts_new_patients,
        offers_telehealth=True,
        list_on_provider_page=True,
        languages_spoken=languages if languages is not None else ["English"],
        timezone=timezone,
    )
    db.add(provider)
    db.commit()
    return provider


def create_payer(
    db: Session,
    name: str = "Acme Health",
    payer_type: str = "commercial",
    status_code: Optional[str] = "approved",
    effective_date: Optional[date] = None,
    projected_effective_date: Optional[date] = None,
) -> Payer:
    payer = Payer(
        name=name,
        payer_type=payer_type,
        state="UT",
        status_code=status_code,
        effective_date=effective_date,
        projected_effective_date=projected_effective_date,
        requires_attending=False,
    )
    db.add(payer)
    db.commit()
    return payer


def create_contract(
    db: Session,
    provider: Provider,
    payer: Payer,
    effective_date: date = CONTRACT_START,
    expiration_date: Optional[date] = None,
    status: str = CONTRACT_STATUS_IN_NETWORK,
    billing_provider_id: Optional[int] = None,
) -> ProviderPayerContract:
    contract = ProviderPayerContract(
        provider_id=provider.id,
        payer_id=payer.id,
        status=status,
        effective_date=effective_date,
        expiration_date=expiration_date,
        billing_provider_id=billing_provider_id,
    )
    db.add(contract)
    db.commit()
    return contract


def create_supervision(
    db: Session,
    supervised: Provider,
    attending: Provider,
    payer: Optional[Payer] = None,
    level: str = SUPERVISION_LEVEL_SIGN_OFF_ONLY,
    start_date: date = CONTRACT_START,
    end_date: Optional[date] = None,
    is_active: bool = True,
) -> SupervisionRelationship:
    relationship = SupervisionRelationship(
        supervised_provider_id=supervised.id,
        attending_provider_id=attending.id,
        payer_id=payer.id if payer else None,
        supervision_level=level,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
    )
    db.add(relationship)
    db.commit()
    return relationship


def create_service_instance(
    db: Session,
    duration_minutes: int = 60,
    payer: Optional[Payer] = None,
    name: str = "Follow-up",
    is_active: bool = True,
) -> ServiceInstance:
    instance = ServiceInstance(
        name=name,
        duration_minutes=duration_minutes,
        payer_id=payer.id if payer else None,
        is_telehealth=True,
        is_active=is_active,
    )
    db.add(instance)
    db.commit()
    return instance


def create_template(
    db: Session,
    provider: Provider,
    day_of_week: int = 0,
    start_time: time = time(9, 0),
    end_time: time = time(12, 0),
) -> AvailabilityTemplate:
    template = AvailabilityTemplate(
        provider_id=provider.id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        is_recurring=True,
    )
    db.add(template)
    db.commit()
    return template


def create_exception(
    db: Session,
    provider: Provider,
    exception_date: date,
    exception_type: str = "blackout",
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
) -> AvailabilityException:
    exception = AvailabilityException(
        provider_id=provider.id,
        exception_date=exception_date,
        exception_type=exception_type,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(exception)
    db.commit()
    return exception


def create_appointment(
    db: Session,
    provider: Provider,
    payer: Payer,
    appointment_date: date = MONDAY,
    start_time: time = time(10, 0),
    end_time: time = time(11, 0),
    status: str = APPOINTMENT_STATUS_SCHEDULED,
) -> Appointment:
    start_minutes = start_time.hour * 60 + start_time.minute
    end_minutes = end_time.hour * 60 + end_time.minute
    appointment = Appointment(
        provider_id=provider.id,
        billing_provider_id=provider.id,
        payer_id=payer.id,
        patient_ref="patient-1",
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=end_minutes - start_minutes,
        status=status,
        resolution_kind="direct",
    )
    db.add(appointment)
    db.commit()
    return appointment


def bookable_setup(db: Session, duration_minutes: int = 60):
    """One provider directly contracted with one payer, Monday 09:00-12:00, one service instance."""
    provider = create_provider(db)
    payer = create_payer(db)
    create_contract(db, provider, payer)
    create_template(db, provider)
    instance = create_service_instance(db, duration_minutes=duration_minutes)
    return provider, payer, instance
