"""GameRepository on top of SQLAlchemy"""

from uuid import UUID, uuid4

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from miniapp_chess.core.models import GameModel, PlayerId
from miniapp_chess.core.shared_types import Color
from miniapp_chess.db.schema import DBGame


class SQLGameRepository:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_game(self, game_id: UUID) -> GameModel | None:
        game_db = self._fetch_game(game_id)
        if game_db:
            return self._to_model(game_db)
        return None

    def list_games(self, player: PlayerId) -> list[tuple[UUID, GameModel]]:
        query = (
            select(DBGame)
            .where(or_(DBGame.white_player == player, DBGame.black_player == player))
            .order_by(DBGame.updated_at.desc())
        )
        return [(game_db.id, self._to_model(game_db)) for game_db in self.db.scalars(query)]

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        new_id = uuid4()
        game_db = DBGame(id=new_id)
        self._copy_into(game_db, game)
        self.db.add(game_db)
        self.db.commit()
        self.db.refresh(game_db)
        return self._to_model(game_db), new_id

    def update_game(self, game_id: UUID, game: GameModel) -> GameModel | None:
        game_db = self._fetch_game(game_id)
        if not game_db:
            return None
        self._copy_into(game_db, game)
        self.db.commit()
        self.db.refresh(game_db)
        return self._to_model(game_db)

    def delete_game(self, game_id: UUID) -> GameModel | None:
        game_db = self._fetch_game(game_id)
        if not game_db:
            return None
        game_model = self._to_model(game_db)
        self.db.delete(game_db)
        self.db.commit()
        return game_model

    def _fetch_game(self, game_id: UUID) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        return self.db.scalar(query)

    @staticmethod
    def _copy_into(game_db: DBGame, game: GameModel) -> None:
        game_db.white_player = game.registered_players.get(Color.WHITE.value)
        game_db.black_player = game.registered_players.get(Color.BLACK.value)
        game_db.current_fen = game.current_fen
        # JSON columns only notice reassignment, so hand over fresh lists
        game_db.history_fen = list(game.history_fen)
        game_db.moves_uci = list(game.moves_uci)
        game_db.status = game.status
        game_db.resigned_by = game.resigned_by

    @staticmethod
    def _to_model(game_db: DBGame) -> GameModel:
        seats = {Color.WHITE.value: game_db.white_player, Color.BLACK.value: game_db.black_player}
        return GameModel(
            current_fen=game_db.current_fen,
            history_fen=list(game_db.history_fen),
            moves_uci=list(game_db.moves_uci),
            registered_players={color: player for color, player in seats.items() if player is not None},
            status=game_db.status,
            resigned_by=game_db.resigned_by,
        )
