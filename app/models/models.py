"""
Database models for the football league stats service.

Two kinds of "team" exist side by side:
- ``MatchTeam`` (table ``teams``): an ephemeral side created for one match.
- ``PersistentTeam``: a standing club identity registered to tournaments.
They are linked only by case-insensitive, trimmed name equality.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Float, Integer, DateTime, ForeignKey, Boolean, Text, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()

MATCH_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")
MATCH_TYPES = ("internal", "external")
EVENT_TYPES = ("goal", "own_goal", "card", "save", "clean_sheet", "substitution")
CARD_TYPES = ("yellow", "red")
TOURNAMENT_TYPES = ("round_robin", "double_round_robin", "knockout")

ROUND_GROUP_STAGE = "group_stage"
ROUND_FINAL = "final"


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# PEOPLE
# =============================================================================

class UserProfile(Base):
    """Account profile holding the display name, photo and preferred position."""
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=True, unique=True)
    name = Column(String(255), nullable=False, index=True)
    position = Column(String(50), nullable=True)  # free text: "CB", "Midfielder", ...
    phone = Column(String(50), nullable=True)
    photo_url = Column(String(500), nullable=True)
    role = Column(String(20), nullable=False, default="player")  # admin, player
    status = Column(String(20), nullable=False, default="approved")  # pending, approved, rejected
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class Player(Base):
    """League player; display attributes live on the linked user profile."""
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    jersey_number = Column(Integer, nullable=True)
    preferred_position = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    user_profile = relationship("UserProfile", lazy="joined")
    match_entries = relationship("MatchPlayer", back_populates="player", cascade="all, delete-orphan")

    @property
    def display_name(self):
        return self.user_profile.name if self.user_profile else None

    @property
    def position(self):
        if self.user_profile and self.user_profile.position:
            return self.user_profile.position
        return self.preferred_position

    @property
    def photo_url(self):
        return self.user_profile.photo_url if self.user_profile else None


# =============================================================================
# MATCHES
# =============================================================================

class Match(Base):
    """A fixture or friendly; scores are meaningful only once completed."""
    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=_uuid)
    type = Column(String(20), nullable=False, default="internal")  # internal, external
    date = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="scheduled", index=True)
    opponent = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    team_a_name = Column(String(255), nullable=True)
    team_b_name = Column(String(255), nullable=True)
    score_team_a = Column(Integer, nullable=False, default=0)
    score_team_b = Column(Integer, nullable=False, default=0)
    tournament_id = Column(String(36), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=True, index=True)
    round = Column(String(50), nullable=True, index=True)  # group_stage, final, ...
    is_fixture = Column(Boolean, nullable=False, default=False)
    fixture_order = Column(Integer, nullable=True)
    match_summary = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    tournament = relationship("Tournament", back_populates="matches")
    teams = relationship("MatchTeam", back_populates="match", cascade="all, delete-orphan")
    roster = relationship("MatchPlayer", back_populates="match", cascade="all, delete-orphan")
    events = relationship("MatchEvent", back_populates="match", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_matches_tournament_status", "tournament_id", "status"),
    )


class MatchTeam(Base):
    """Ephemeral side created for a single match."""
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    match = relationship("Match", back_populates="teams")


class MatchPlayer(Base):
    """Roster entry: one player's participation in one match."""
    __tablename__ = "match_players"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)
    position = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    match = relationship("Match", back_populates="roster")
    player = relationship("Player", back_populates="match_entries")
    team = relationship("MatchTeam")
    stat = relationship("Stat", back_populates="match_player", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
    )


class Stat(Base):
    """Per-roster-entry statistics; at most one row per roster entry."""
    __tablename__ = "stats"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_player_id = Column(
        String(36), ForeignKey("match_players.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    goals = Column(Integer, nullable=False, default=0)
    assists = Column(Integer, nullable=False, default=0)
    yellow_cards = Column(Integer, nullable=False, default=0)
    red_cards = Column(Integer, nullable=False, default=0)
    own_goals = Column(Integer, nullable=False, default=0)
    minutes_played = Column(Integer, nullable=True)  # null means the 90 minute default
    rating = Column(Float, nullable=True)  # 0-10, null when unrated
    # Informational only; the event log is authoritative for these two
    saves = Column(Integer, nullable=False, default=0)
    clean_sheets = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    match_player = relationship("MatchPlayer", back_populates="stat")


class MatchEvent(Base):
    """
    In-match occurrence (goal, own goal, card, save, clean sheet, substitution).

    Legacy rows name players by display name only (``scorer``, ``assist``,
    ``player``). ``player_id``/``assist_player_id`` hold the ids resolved once
    against the match roster at write time; read paths use the ids.
    """
    __tablename__ = "match_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(20), nullable=False, index=True)
    minute = Column(Integer, nullable=True)
    team = Column(String(255), nullable=True)
    scorer = Column(String(255), nullable=True)
    assist = Column(String(255), nullable=True)
    player = Column(String(255), nullable=True)
    card_type = Column(String(10), nullable=True)
    player_out = Column(String(255), nullable=True)
    player_in = Column(String(255), nullable=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="SET NULL"), nullable=True, index=True)
    assist_player_id = Column(String(36), ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    match = relationship("Match", back_populates="events")

    __table_args__ = (
        Index("ix_match_events_match_type", "match_id", "event_type"),
    )

    @property
    def subject_name(self):
        """Name of the player the event is about."""
        if self.event_type in ("goal", "own_goal"):
            return self.scorer
        return self.player


# =============================================================================
# TEAMS & TOURNAMENTS
# =============================================================================

class PersistentTeam(Base):
    """Standing team identity usable across tournaments."""
    __tablename__ = "persistent_teams"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False, index=True)
    captain_id = Column(String(36), ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    captain = relationship("Player")
    members = relationship("PersistentTeamPlayer", back_populates="team", cascade="all, delete-orphan")


class PersistentTeamPlayer(Base):
    """Roster membership of a persistent team."""
    __tablename__ = "persistent_team_players"

    id = Column(String(36), primary_key=True, default=_uuid)
    team_id = Column(String(36), ForeignKey("persistent_teams.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)

    team = relationship("PersistentTeam", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "player_id", name="uq_persistent_team_players"),
    )


class Tournament(Base):
    """Competition with configurable point weights."""
    __tablename__ = "tournaments"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    type = Column(String(30), nullable=False, default="round_robin")
    status = Column(String(20), nullable=False, default="upcoming")
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    points_per_win = Column(Integer, nullable=True)
    points_per_draw = Column(Integer, nullable=True)
    points_per_loss = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    matches = relationship("Match", back_populates="tournament")
    registrations = relationship("TournamentTeam", back_populates="tournament", cascade="all, delete-orphan")


class TournamentTeam(Base):
    """Registration of a persistent team in a tournament."""
    __tablename__ = "tournament_teams"

    id = Column(String(36), primary_key=True, default=_uuid)
    tournament_id = Column(String(36), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(String(36), ForeignKey("persistent_teams.id", ondelete="CASCADE"), nullable=False, index=True)
    registered_at = Column(DateTime, nullable=False, default=_utcnow)

    tournament = relationship("Tournament", back_populates="registrations")
    team = relationship("PersistentTeam", lazy="joined")

    __table_args__ = (
        UniqueConstraint("tournament_id", "team_id", name="uq_tournament_teams"),
    )


class TournamentStanding(Base):
    """League table row, recomputed wholesale from completed matches."""
    __tablename__ = "tournament_standings"

    id = Column(String(36), primary_key=True, default=_uuid)
    tournament_id = Column(String(36), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(String(36), ForeignKey("persistent_teams.id", ondelete="CASCADE"), nullable=False, index=True)
    group_name = Column(String(50), nullable=True)
    matches_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    goals_for = Column(Integer, nullable=False, default=0)
    goals_against = Column(Integer, nullable=False, default=0)
    goal_difference = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    team = relationship("PersistentTeam", lazy="joined")

    __table_args__ = (
        UniqueConstraint("tournament_id", "team_id", "group_name", name="uq_tournament_standings"),
    )


class TournamentPrize(Base):
    """Awarded prize; rows marked "Manual Selection" survive automatic recomputes."""
    __tablename__ = "tournament_prizes"

    id = Column(String(36), primary_key=True, default=_uuid)
    tournament_id = Column(String(36), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(50), nullable=False, index=True)
    rank = Column(Integer, nullable=True)
    recipient_type = Column(String(10), nullable=False)  # team, player
    recipient_team_id = Column(String(36), ForeignKey("persistent_teams.id", ondelete="SET NULL"), nullable=True)
    recipient_player_id = Column(String(36), ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    prize_amount = Column(Float, nullable=True)
    prize_description = Column(String(255), nullable=True)
    awarded_at = Column(DateTime, nullable=False, default=_utcnow)

    recipient_team = relationship("PersistentTeam")
    recipient_player = relationship("Player")
