from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey, DateTime, Boolean, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ⚙️ Политика группы: приветствие, правила, удаление служебных сообщений
class GroupPolicy(Base):
    __tablename__ = "group_policies"

    id = Column(Integer, primary_key=True)
    chat_id = Column(BigInteger, unique=True, nullable=False, index=True)
    welcome_message = Column(Text, nullable=True)
    rules_message = Column(Text, nullable=True)
    delete_service_messages = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# 📋 Белый и чёрный списки группы
# list_type = "allow" | "deny". Пользователь может быть только в одном списке
# (при добавлении в один список удаляется из другого на уровне сервиса).
class PolicyListEntry(Base):
    __tablename__ = "policy_list_entries"

    id = Column(Integer, primary_key=True)
    chat_id = Column(BigInteger, nullable=False, index=True)
    user_id = Column(BigInteger, nullable=False)
    list_type = Column(String(8), nullable=False)
    added_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_policy_list_chat_user"),
    )


# ✅ Пользователи, прошедшие проверку (кэш с TTL, чистится при чтении)
class VerifiedUser(Base):
    __tablename__ = "verified_users"

    id = Column(Integer, primary_key=True)
    chat_id = Column(BigInteger, nullable=False)
    user_id = Column(BigInteger, nullable=False)
    verified_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_verified_chat_user", "chat_id", "user_id", unique=True),
    )


# 🌐 Федерация: хаб-чат и связанные с ним группы
class Federation(Base):
    __tablename__ = "federations"

    id = Column(Integer, primary_key=True)
    hub_chat_id = Column(BigInteger, unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    chats = relationship("FederationChat", back_populates="federation", cascade="all, delete-orphan")
    bans = relationship("FederationBan", back_populates="federation", cascade="all, delete-orphan")


# 🔗 Привязка чата к федерации (чат состоит не более чем в одной федерации)
class FederationChat(Base):
    __tablename__ = "federation_chats"

    id = Column(Integer, primary_key=True)
    federation_id = Column(Integer, ForeignKey("federations.id", ondelete="CASCADE"), nullable=False, index=True)
    chat_id = Column(BigInteger, unique=True, nullable=False)
    linked_at = Column(DateTime, default=utcnow)

    federation = relationship("Federation", back_populates="chats")


# 🚫 Федеративные баны
class FederationBan(Base):
    __tablename__ = "federation_bans"

    id = Column(Integer, primary_key=True)
    federation_id = Column(Integer, ForeignKey("federations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(BigInteger, nullable=False)
    banned_at = Column(DateTime, default=utcnow)

    federation = relationship("Federation", back_populates="bans")

    __table_args__ = (
        UniqueConstraint("federation_id", "user_id", name="uq_federation_ban_user"),
    )


# ⚠️ Предупреждения пользователей
class UserWarning(Base):
    __tablename__ = "user_warnings"

    id = Column(Integer, primary_key=True)
    chat_id = Column(BigInteger, nullable=False)
    user_id = Column(BigInteger, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    last_reason = Column(Text, nullable=True)
    updated_by = Column(BigInteger, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_user_warnings_chat_user", "chat_id", "user_id", unique=True),
    )
