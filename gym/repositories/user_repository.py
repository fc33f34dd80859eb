"""Repository for user accounts."""
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from shared.database.base_repository import BaseRepository
from shared.database.errors import DataAccessError
from shared.database.pool import ConnectionPool
from shared.database.queries import QueryCatalog
from shared.models.entity import Page
from shared.observability.logger import get_logger
from gym.models.users import User, UserRole

logger = get_logger("gym.repositories.user")

USER_QUERIES = QueryCatalog.from_file(Path(__file__).parent / "sql" / "users.sql")


class UserRepository(BaseRepository[User]):
    """Repository for clients, trainers and administrators.

    Handles the users table and the user-side lookups into training_programs.
    """

    def __init__(self, pool: ConnectionPool, queries: QueryCatalog = USER_QUERIES):
        super().__init__(pool)
        self.queries = queries

    @property
    def table_name(self) -> str:
        return "users"

    def map_row(self, row: Mapping[str, Any]) -> User:
        try:
            role = UserRole(row.get("role"))
        except ValueError:
            raise DataAccessError(f"Unknown user role {row.get('role')!r} for user id={row.get('id')}") from None
        try:
            return User(
                id=row["id"],
                login=row["login"],
                password=row["password"],
                role=role,
                first_name=row["first_name"],
                last_name=row["last_name"],
            )
        except (KeyError, ValidationError) as e:
            raise DataAccessError(f"Malformed users row id={row.get('id')}: {e}", cause=e) from e

    async def insert(self, user: User) -> User:
        """Create a user; the id of the argument is ignored and assigned by the database."""
        row = await self._fetchrow(
            "insert",
            self.queries["insert"],
            user.login,
            user.password,
            user.role.value,
            user.first_name,
            user.last_name,
        )
        if row is None:
            raise DataAccessError("Insert into users returned no row")
        created = self.map_row(row)
        logger.info("User created", data={"user_id": created.id, "role": created.role.value})
        return created

    async def update(self, user: User) -> User:
        """Overwrite the stored user with user.id.

        Raises:
            DataAccessError: If no user has that id
        """
        row = await self._fetchrow(
            "update",
            self.queries["update"],
            user.id,
            user.login,
            user.password,
            user.role.value,
            user.first_name,
            user.last_name,
        )
        if row is None:
            raise DataAccessError(f"Update of users id={user.id} matched no row")
        logger.info("User updated", data={"user_id": user.id})
        return self.map_row(row)

    async def find_by_credentials(self, login: str, password: str) -> Optional[User]:
        """Find a user by login and already-hashed password.

        Returns:
            The matching user, or None if the pair matches nobody
        """
        row = await self._fetchrow(
            "find_by_credentials",
            self.queries["find_by_login_and_password"],
            login,
            password,
        )
        if row is None:
            logger.info("No user matches credentials", data={"login": login})
            return None
        return self.map_row(row)

    async def check_login_unique(self, login: str) -> bool:
        """True if no user has this login yet."""
        found = await self._fetchval(
            "check_login_unique",
            self.queries["check_login_for_unique"],
            login,
        )
        return found is None

    async def find_by_name(self, first_name: str, last_name: str) -> List[User]:
        """Find clients by first and last name; zero or more matches."""
        rows = await self._fetch(
            "find_by_name",
            self.queries["find_client_by_name"],
            first_name,
            last_name,
        )
        return self._map_rows(rows)

    async def find_page_of_clients(self, offset: int, page_size: int) -> Page[User]:
        """Get one page of clients together with the total number of clients."""
        return await self._find_page(
            "find_page_of_clients",
            self.queries["find_all_clients_by_pages"],
            self.queries["count_all_clients"],
            offset,
            page_size,
        )

    async def find_trainer_clients_with_program_id(self, trainer_id: int) -> Dict[User, int]:
        """Map each client of a trainer to the id of their training program.

        Issues one program lookup per client on the same connection, so the
        cost grows with the number of clients.

        Raises:
            DataAccessError: If a client does not have exactly one program
        """
        result: Dict[User, int] = {}
        async with self.connection("find_trainer_clients_with_program_id") as conn:
            clients = await conn.fetch(self.queries["select_personal_clients"], trainer_id)
            for row in clients:
                client = self.map_row(row)
                programs = await conn.fetch(self.queries["select_training_program_id"], client.id)
                if len(programs) != 1:
                    raise DataAccessError(
                        f"Client id={client.id} has {len(programs)} training programs, expected 1"
                    )
                result[client] = programs[0]["id"]

        logger.info("Trainer clients loaded", data={
            "trainer_id": trainer_id,
            "count": len(result),
        })
        return result

    async def find_author_full_name(self, program_id: int) -> str:
        """Full name of the trainer who wrote a training program.

        Raises:
            DataAccessError: If the program or its author does not exist
        """
        row = await self._fetchrow(
            "find_author_full_name",
            self.queries["select_training_program_author_name"],
            program_id,
        )
        if row is None:
            raise DataAccessError(f"No author found for training program id={program_id}")
        return f"{row['first_name']} {row['last_name']}"

    async def find_client_id_and_name_index(self) -> Dict[int, str]:
        """Map every client id to "first last"."""
        rows = await self._fetch(
            "find_client_id_and_name_index",
            self.queries["select_client_id_and_name"],
        )
        return {row["id"]: f"{row['first_name']} {row['last_name']}" for row in rows}

    async def is_personal_trainer_needed(self, client_id: int) -> bool:
        """Decode the stored 0/1 flag.

        Raises:
            DataAccessError: If the client is missing or the flag is not 0 or 1
        """
        row = await self._fetchrow(
            "is_personal_trainer_needed",
            self.queries["is_personal_trainer_need"],
            client_id,
        )
        if row is None:
            raise DataAccessError(f"No user with id={client_id}")

        value = row["is_personal_trainer_need"]
        if value == 1:
            return True
        if value == 0:
            return False
        raise DataAccessError(
            f"Unexpected is_personal_trainer_need value {value!r} for user id={client_id}"
        )
