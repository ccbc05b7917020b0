"""
Database Models - CRM Entities

This module defines the relational models the analytics engine reads from.
The entities are owned by the CRM persistence layer; analytics never writes
to them except through the demo seeder.

Tables:
- users: authenticated application users
- customers: companies / organizations
- contacts: people within a customer
- deals: sales pipeline entries, one customer each
- tasks: to-dos with optional due date
- meetings: scheduled meetings with a customer
- meeting_attendees: contacts invited to a meeting
- interactions: calls, emails and notes logged against a customer

Stage and status columns are stored as plain strings. The enumerations
below name the known values; ``parse`` maps anything else to ``UNKNOWN``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class _ParsableEnum(str, Enum):
    """String enumeration with an UNKNOWN fallback for unrecognized values"""

    @classmethod
    def parse(cls, value: Optional[str]):
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class DealStage(_ParsableEnum):
    """Deal pipeline stage enumeration"""
    LEAD = "lead"
    QUALIFICATION = "qualification"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    UNKNOWN = "unknown"


# Stages that still count as an active deal
OPEN_DEAL_STAGES = (
    DealStage.LEAD,
    DealStage.QUALIFICATION,
    DealStage.PROPOSAL,
    DealStage.NEGOTIATION,
)


class TaskStatus(_ParsableEnum):
    """Task status enumeration"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class MeetingStatus(_ParsableEnum):
    """Meeting status enumeration"""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    UNKNOWN = "unknown"


# =============================================================================
# ENTITY TABLES
# =============================================================================

class User(Base):
    """Authenticated application user"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    photo_url: Mapped[Optional[str]] = mapped_column(Text)
    firebase_uid: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Customer(Base):
    """
    Customer (company / organization)

    Invariant: created_at <= updated_at.
    """
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    zip_code: Mapped[Optional[str]] = mapped_column(String(20))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    industry: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[Optional[str]] = mapped_column(String(20), default="active")
    website: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    total_value: Mapped[Optional[float]] = mapped_column(Float, default=0)
    assigned_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    contacts: Mapped[List["Contact"]] = relationship(back_populates="customer")
    deals: Mapped[List["Deal"]] = relationship(back_populates="customer")
    meetings: Mapped[List["Meeting"]] = relationship(back_populates="customer")

    __table_args__ = (
        Index("ix_customers_created_at", "created_at"),
    )


class Contact(Base):
    """Person within a customer organization"""
    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    job_title: Mapped[Optional[str]] = mapped_column(String(100))
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    customer: Mapped["Customer"] = relationship(back_populates="contacts")


class Deal(Base):
    """
    Sales pipeline entry

    ``stage`` holds one of the DealStage values. ``value`` may be NULL in
    persisted rows and is read as 0.
    """
    __tablename__ = "deals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Optional[float]] = mapped_column(Float, default=0)
    currency: Mapped[Optional[str]] = mapped_column(String(3), default="USD")
    stage: Mapped[str] = mapped_column(String(20), nullable=False)
    probability: Mapped[Optional[int]] = mapped_column(Integer, default=0)  # 0-100
    expected_close_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    assigned_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    customer: Mapped["Customer"] = relationship(back_populates="deals")

    __table_args__ = (
        Index("ix_deals_stage", "stage"),
        Index("ix_deals_created_at", "created_at"),
    )


class Task(Base):
    """To-do item, optionally tied to a customer or deal"""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    priority: Mapped[Optional[str]] = mapped_column(String(20), default="medium")
    status: Mapped[Optional[str]] = mapped_column(String(20), default=TaskStatus.PENDING.value)
    assigned_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"))
    deal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("deals.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_tasks_due_date", "due_date"),
    )


class Meeting(Base):
    """Meeting with a customer"""
    __tablename__ = "meetings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    meeting_type: Mapped[Optional[str]] = mapped_column(String(20), default="in_person")
    status: Mapped[Optional[str]] = mapped_column(String(20), default=MeetingStatus.SCHEDULED.value)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"))
    assigned_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    deal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("deals.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    customer: Mapped[Optional["Customer"]] = relationship(back_populates="meetings")
    attendees: Mapped[List["MeetingAttendee"]] = relationship(back_populates="meeting")

    __table_args__ = (
        Index("ix_meetings_start_time", "start_time"),
    )


class MeetingAttendee(Base):
    """Junction between meetings and contacts"""
    __tablename__ = "meeting_attendees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_id: Mapped[int] = mapped_column(ForeignKey("meetings.id"), nullable=False)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id"), nullable=False)
    attended: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    meeting: Mapped["Meeting"] = relationship(back_populates="attendees")


class Interaction(Base):
    """Call, email, meeting or note logged against a customer"""
    __tablename__ = "interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # call, email, meeting, note
    subject: Mapped[Optional[str]] = mapped_column(String(255))
    content: Mapped[Optional[str]] = mapped_column(Text)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    contact_id: Mapped[Optional[int]] = mapped_column(ForeignKey("contacts.id"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    deal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("deals.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
