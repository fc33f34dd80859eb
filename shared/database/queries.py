"""Named SQL templates loaded from .sql files."""
import re
from pathlib import Path
from typing import Dict, Iterator, Mapping, Union

_NAME_MARKER = re.compile(r"^--\s*name:\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*$")


class QueryNotFoundError(KeyError):
    """No template is registered under the requested name."""


class QueryCatalog(Mapping[str, str]):
    """Read-only mapping from logical query name to SQL template.

    Templates use asyncpg positional placeholders ($1, $2, ...). In a .sql
    file each template starts with a marker line:

        -- name: find_by_login_and_password
        SELECT * FROM users WHERE login = $1 AND password = $2
    """

    def __init__(self, source: str, queries: Mapping[str, str]):
        self.source = source
        self._queries: Dict[str, str] = dict(queries)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "QueryCatalog":
        path = Path(path)
        return cls(path.name, parse_queries(path.read_text(encoding="utf-8"), path.name))

    def __getitem__(self, name: str) -> str:
        try:
            return self._queries[name]
        except KeyError:
            raise QueryNotFoundError(f"No query named {name!r} in {self.source}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._queries)

    def __len__(self) -> int:
        return len(self._queries)


def parse_queries(text: str, source: str = "<string>") -> Dict[str, str]:
    """Split `-- name:` blocks into a dict. Lines before the first marker are ignored."""
    queries: Dict[str, str] = {}
    name = None
    lines: list[str] = []

    def flush() -> None:
        if name is None:
            return
        sql = "\n".join(lines).strip().rstrip(";").strip()
        if not sql:
            raise ValueError(f"Query {name!r} in {source} is empty")
        queries[name] = sql

    for line in text.splitlines():
        match = _NAME_MARKER.match(line.strip())
        if match:
            flush()
            name = match.group("name")
            if name in queries:
                raise ValueError(f"Duplicate query name {name!r} in {source}")
            lines = []
        elif name is not None:
            lines.append(line)
    flush()
    return queries
