"""
Player Repository for player statistics data access.

Career totals, per-season buckets and match-history rows all go through
here. Season buckets are a keyed container (season_id -> stat line) with
get-or-create semantics; callers never build them by hand.
"""
from typing import List, Optional, Tuple

from futsal_league.models import (
    Player,
    PlayerCareerStats,
    PlayerMatchHistory,
    PlayerSeasonStats,
)
from futsal_league.repositories.base import BaseRepository


class PlayerRepository(BaseRepository[Player]):
    """Repository for players and their statistics rows."""

    entity_name = "Player"

    def __init__(self, db):
        super().__init__(Player, db)

    # ========================================================================
    # Stat buckets
    # ========================================================================

    def career_stats(self, player: Player) -> PlayerCareerStats:
        """Career row for a player, created with zero counters if missing."""
        if player.career_stats is None:
            player.career_stats = PlayerCareerStats(player_id=player.id)
        return player.career_stats

    def season_stats(self, player: Player, season_id: str) -> PlayerSeasonStats:
        """Season bucket for a player, created with zero counters if missing."""
        bucket = player.season_stats.get(season_id)
        if bucket is None:
            bucket = PlayerSeasonStats(player_id=player.id, season_id=season_id)
            player.season_stats[season_id] = bucket
        return bucket

    # ========================================================================
    # Match history
    # ========================================================================

    def history_entry(self, player_id: str, match_id: str):
        return self.db.query(PlayerMatchHistory).filter(
            PlayerMatchHistory.player_id == player_id,
            PlayerMatchHistory.match_id == match_id,
        ).first()

    def history_for_match(self, match_id: str) -> List[PlayerMatchHistory]:
        """All history rows credited for a match, in player order for stable locking."""
        return self.db.query(PlayerMatchHistory).filter(
            PlayerMatchHistory.match_id == match_id
        ).order_by(PlayerMatchHistory.player_id).all()

    def history_for_player(self, player_id: str) -> List[PlayerMatchHistory]:
        return self.db.query(PlayerMatchHistory).filter(
            PlayerMatchHistory.player_id == player_id
        ).order_by(PlayerMatchHistory.match_date).all()

    def add_history(self, player: Player, **fields) -> PlayerMatchHistory:
        entry = PlayerMatchHistory(player_id=player.id, **fields)
        player.match_history.append(entry)
        return entry

    def remove_history(self, player: Player, entry: PlayerMatchHistory) -> None:
        if entry in player.match_history:
            player.match_history.remove(entry)
        else:
            self.db.delete(entry)

    def player_ids_with_history_in_season(self, season_id: str) -> List[str]:
        rows = self.db.query(PlayerMatchHistory.player_id).filter(
            PlayerMatchHistory.season_id == season_id
        ).distinct().all()
        return sorted(row[0] for row in rows)

    def player_ids_with_history(self) -> List[str]:
        rows = self.db.query(PlayerMatchHistory.player_id).distinct().all()
        return sorted(row[0] for row in rows)

    # ========================================================================
    # Leaderboards
    # ========================================================================

    def top_scorers(self, season_id: Optional[str] = None, limit: int = 10) -> List[Tuple[Player, object]]:
        """
        (player, stat line) pairs with at least one goal, most goals first.

        Career lines when ``season_id`` is None, that season's buckets
        otherwise. Ties go to more assists, then fewer appearances, then name.
        """
        if season_id is None:
            stats = PlayerCareerStats
            query = self.db.query(Player, stats).join(stats, stats.player_id == Player.id)
        else:
            stats = PlayerSeasonStats
            query = self.db.query(Player, stats).join(stats, stats.player_id == Player.id).filter(
                stats.season_id == season_id
            )
        return query.filter(stats.goals > 0).order_by(
            stats.goals.desc(),
            stats.assists.desc(),
            stats.appearances.asc(),
            Player.name,
            Player.id,
        ).limit(limit).all()
