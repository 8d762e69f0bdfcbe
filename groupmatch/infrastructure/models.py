# groupmatch/infrastructure/models.py
"""
SQLAlchemy ORM models for the matching engine.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from groupmatch.infrastructure.db.session import Base


def now():
    return datetime.now(timezone.utc)


course_enrollments = Table(
    "course_enrollments",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now)

    courses = relationship("Course", secondary=course_enrollments, back_populates="students")
    group_memberships = relationship("GroupMember", back_populates="user")
    profile = relationship("CharacteristicProfileRow", back_populates="user", uselist=False)


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)

    students = relationship("User", secondary=course_enrollments, back_populates="courses")
    groups = relationship("StudyGroup", back_populates="course")


class StudyGroup(Base):
    __tablename__ = "study_groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    max_size = Column(Integer, nullable=False, default=6)
    visibility = Column(String(20), nullable=False, default="OPEN")
    created_at = Column(DateTime(timezone=True), default=now)

    course = relationship("Course", back_populates="groups")
    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")


class GroupMember(Base):
    __tablename__ = "group_members"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("study_groups.id", ondelete="CASCADE"), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    joined_at = Column(DateTime(timezone=True), default=now)

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    group = relationship("StudyGroup", back_populates="members")
    user = relationship("User", back_populates="group_memberships")


class CharacteristicProfileRow(Base):
    __tablename__ = "characteristic_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    # role scores, each in [0, 1]
    score_leader = Column(Float, nullable=False, default=0.0)
    score_planner = Column(Float, nullable=False, default=0.0)
    score_expert = Column(Float, nullable=False, default=0.0)
    score_creative = Column(Float, nullable=False, default=0.0)
    score_communicator = Column(Float, nullable=False, default=0.0)
    score_team_player = Column(Float, nullable=False, default=0.0)
    score_challenger = Column(Float, nullable=False, default=0.0)

    quiz_status = Column(String(20), nullable=False, default="NOT_STARTED")
    answered_questions = Column(Integer, nullable=True)
    total_questions = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), default=now)

    user = relationship("User", back_populates="profile")


class GroupCharacteristicProfileRow(Base):
    __tablename__ = "group_characteristic_profiles"

    id = Column(Integer, primary_key=True)
    group_id = Column(
        Integer, ForeignKey("study_groups.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )

    avg_leader = Column(Float, nullable=False, default=0.0)
    avg_planner = Column(Float, nullable=False, default=0.0)
    avg_expert = Column(Float, nullable=False, default=0.0)
    avg_creative = Column(Float, nullable=False, default=0.0)
    avg_communicator = Column(Float, nullable=False, default=0.0)
    avg_team_player = Column(Float, nullable=False, default=0.0)
    avg_challenger = Column(Float, nullable=False, default=0.0)

    member_count_contributing = Column(Integer, nullable=False, default=0)
    current_variance = Column(Float, nullable=False, default=0.0)
    last_recomputed_at = Column(DateTime(timezone=True), nullable=False, default=now)


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True)
    text = Column(Text, nullable=False)
    order_index = Column(Integer, default=0)
    active = Column(Boolean, default=True)

    options = relationship("QuizOption", back_populates="question", cascade="all, delete-orphan")


class QuizOption(Base):
    __tablename__ = "quiz_options"

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey("quiz_questions.id"), index=True, nullable=False)
    text = Column(String(300), nullable=False)
    order_index = Column(Integer, default=0)
    # {"LEADER": 0.8, "COMMUNICATOR": 0.2}
    role_weights = Column(JSON, default=dict)

    question = relationship("QuizQuestion", back_populates="options")


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("quiz_questions.id"), nullable=False)
    option_id = Column(Integer, ForeignKey("quiz_options.id"), nullable=False)
    answered_at = Column(DateTime(timezone=True), default=now)

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_user_question"),
    )
